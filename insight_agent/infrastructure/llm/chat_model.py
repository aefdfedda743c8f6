from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel

from insight_agent.infrastructure.config.settings import AgentSettings


def create_chat_model(settings: AgentSettings) -> BaseChatModel:
    """Chat model for the configured provider"""

    return init_chat_model(
        settings.model_name,
        model_provider=settings.model_provider,
        temperature=settings.model_temperature,
    )
