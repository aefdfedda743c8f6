# Context handling for a chat session
#
#   SessionManager   live ConversationSessions, keyed by session id
#   ContextPreloader schema, rules and lessons documents, injected once
#                    ahead of a session's first user message
