# State = All information required to resume, continue, or audit the agent’s workflow at a particular moment in time.

# **It’s “the NOW”_ for the agent_, often including:

# Task progress (step, sub-step, or stage)

# Intermediate variables/results (e.g., API call results, parsed values)

# Which tools have been called, what their outputs were

# Flags (e.g., “awaiting user input”, “waiting for API result”)

# Error conditions or exceptions encountered

# Sometimes the current context window, or references to memory locations