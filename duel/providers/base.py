"""Abstract base for the two completion providers."""

from abc import ABC, abstractmethod

from duel.models import ModelResponse
from duel.sessions import ConversationSession


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Uniform "send one prompt, get one reply" adapter over a chat API."""

    @abstractmethod
    def name(self) -> str:
        """Return the participant key this provider serves (e.g. 'gemini')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    def new_session(self, max_history: int) -> ConversationSession:
        """Build an empty session in the shape this provider keeps history."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, session: ConversationSession) -> ModelResponse:
        """Send one prompt within the given session and return the reply.

        Args:
            prompt: Non-empty prompt text.
            session: Session created by new_session(); mutated on success.

        Returns:
            ModelResponse with the trimmed reply. superseded is True when the
            session was invalidated while the call was in flight, in which
            case no history bookkeeping was applied.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
