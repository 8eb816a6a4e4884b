"""Pure dataclasses for the debate relay. No logic, no deps."""

from dataclasses import dataclass

USER_SPEAKER = "user"


@dataclass(frozen=True)
class Participant:
    key: str               # routing key: "gemini", "deepseek"
    name: str              # name used inside prompts: "Gemini"
    label: str             # display label: "🔵 Gemini"


@dataclass(frozen=True)
class Message:
    role: str              # "system", "user" or "assistant"
    content: str


@dataclass(frozen=True)
class DialogueTurn:
    speaker: str           # participant key or USER_SPEAKER
    text: str


@dataclass(frozen=True)
class TurnCursor:
    current: str           # participant key that speaks next
    next_prompt: str


@dataclass
class ModelResponse:
    provider: str
    model: str
    content: str
    latency_sec: float
    token_count: int | None
    superseded: bool = False   # session was invalidated while the call was in flight


@dataclass(frozen=True)
class TurnOutcome:
    speaker: str           # participant key that produced the reply
    label: str
    response: str
    next: str              # participant key that answers next
