from abc import ABC, abstractmethod

from triagedesk.common.logging import get_logger


class BaseIntegration(ABC):
    """Base class for external service integrations.

    Every integration gets a namespaced logger and must answer a health
    check, so the API can report whether the case can be analyzed at all.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"integrations.{name}")

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the integration is reachable and functional."""
        ...


class TextGenerationIntegration(BaseIntegration):
    """A service that turns a task prompt into raw text.

    Implementations return whatever the model produced, without any attempt
    to parse it. They raise ``TextServiceUnavailableError`` when the service
    cannot be reached and ``ExternalServiceError`` when it refuses the call.
    """

    @abstractmethod
    async def generate(self, prompt: str, temperature: float, max_tokens: int) -> str:
        ...
