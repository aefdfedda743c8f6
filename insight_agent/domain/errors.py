from typing import List, Optional


class AgentError(Exception):
    """Base class for agent errors"""


class BackendTransportError(AgentError):
    """The reasoning backend could not be reached or its stream broke"""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class CapabilityValidationError(AgentError):
    """Arguments did not match a capability's declared schema"""

    def __init__(self, capability: str, errors: List[str]):
        super().__init__(f"Invalid arguments for {capability}: {'; '.join(errors)}")
        self.capability = capability
        self.errors = errors


class KnowledgeAccessError(AgentError):
    """A document path resolved outside the knowledge root"""


class RegistryConfigurationError(AgentError):
    """The capability registry is missing a handler or misnames one"""


class SessionBusyError(AgentError):
    """A second writer tried to run a turn on a session that is already running"""
