"""Per-participant conversation memory with a retention cap.

Two providers keep history differently: one hands back an evolving chat handle
that records turns itself, the other needs the caller to resend the full
message list on every request. Both are exposed through ConversationSession so
the orchestrator and the reset path never care which one they hold.

Every invalidate() bumps a generation counter. A provider call captures the
generation when it starts and applies its post-call bookkeeping only if the
generation is unchanged when the reply arrives.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from duel.models import Message

logger = logging.getLogger(__name__)


class ConversationSession(ABC):
    """History of one participant, capped at max_history entries."""

    # Leading entries that eviction never touches.
    _pinned = 0
    # Eviction removes entries in multiples of this.
    _evict_step = 1

    def __init__(self, max_history: int) -> None:
        if max_history < 2:
            raise ValueError(f"max_history must be at least 2, got {max_history}")
        self.max_history = max_history
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    @abstractmethod
    def append(self, turn: Any) -> None:
        """Append one turn, evicting the oldest entries beyond the cap."""
        ...

    @abstractmethod
    def history_length(self) -> int:
        ...

    @abstractmethod
    def truncate(self, keep_from: int) -> None:
        """Drop every entry before index keep_from."""
        ...

    @abstractmethod
    def _clear(self) -> None:
        ...

    def enforce_cap(self) -> None:
        overflow = self.history_length() - self.max_history
        if overflow > 0:
            drop = -(-overflow // self._evict_step) * self._evict_step
            logger.debug("Evicting %d oldest entries (cap %d)", drop, self.max_history)
            self.truncate(self._pinned + drop)

    def invalidate(self) -> None:
        self._clear()
        self._generation += 1


class HandleSession(ConversationSession):
    """Session backed by an opaque, provider-owned chat handle.

    The handle must expose get_history(). It is created lazily through
    factory(history) and rebuilt through the same factory whenever the kept
    history changes.
    """

    # Chat history grows in user/model pairs; a rebuilt chat must open on a user turn.
    _evict_step = 2

    def __init__(self, factory: Callable[[list[Any]], Any], max_history: int) -> None:
        super().__init__(max_history)
        self._factory = factory
        self._handle: Any | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def acquire(self) -> tuple[Any, int]:
        """Return (handle, generation), creating an empty handle if needed."""
        if self._handle is None:
            logger.info("Initializing chat session (generation %d)", self._generation)
            self._handle = self._factory([])
        return self._handle, self._generation

    def history(self) -> list[Any]:
        if self._handle is None:
            return []
        return list(self._handle.get_history())

    def history_length(self) -> int:
        return len(self.history())

    def append(self, turn: Any) -> None:
        self._handle = self._factory(self.history() + [turn])
        self.enforce_cap()

    def truncate(self, keep_from: int) -> None:
        if self._handle is None:
            return
        self._handle = self._factory(self.history()[keep_from:])

    def _clear(self) -> None:
        self._handle = None


class HistorySession(ConversationSession):
    """Explicit message list whose leading system message is never evicted."""

    _pinned = 1

    def __init__(self, system_prompt: str, max_history: int) -> None:
        super().__init__(max_history)
        self._messages: list[Message] = [Message(role="system", content=system_prompt)]

    @property
    def system_message(self) -> Message:
        return self._messages[0]

    def messages(self) -> list[Message]:
        return list(self._messages)

    def as_payload(self) -> list[dict[str, str]]:
        """Snapshot in chat-completions wire format."""
        return [{"role": m.role, "content": m.content} for m in self._messages]

    def history_length(self) -> int:
        return len(self._messages)

    def append(self, turn: Message) -> None:
        if turn.role == "system":
            raise ValueError("Only the leading message may have the system role")
        self._messages.append(turn)
        self.enforce_cap()

    def truncate(self, keep_from: int) -> None:
        self._messages = [self._messages[0]] + self._messages[max(keep_from, 1):]

    def _clear(self) -> None:
        self._messages = self._messages[:1]


class SessionStore:
    """One ConversationSession per participant key."""

    def __init__(self, sessions: dict[str, ConversationSession]) -> None:
        self._sessions = dict(sessions)

    def get(self, key: str) -> ConversationSession:
        try:
            return self._sessions[key]
        except KeyError:
            raise KeyError(f"No session for participant '{key}'") from None

    def keys(self) -> Iterable[str]:
        return self._sessions.keys()

    def invalidate_all(self) -> None:
        for key, session in self._sessions.items():
            session.invalidate()
            logger.info("Session invalidated: %s (generation %d)", key, session.generation)
