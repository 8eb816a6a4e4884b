"""Turn orchestration: pick a starter, relay replies, pause and reset."""

import asyncio
import logging
import random
from collections.abc import Callable

from config.config_loader import PromptsConfig
from duel.models import USER_SPEAKER, DialogueTurn, ModelResponse, Participant, TurnCursor, TurnOutcome
from duel.providers.base import AIProvider
from duel.sessions import SessionStore

logger = logging.getLogger(__name__)


class DebateOrchestrator:
    """Owns both participants' sessions and decides who speaks next.

    One orchestrator serves one debate at a time. Overlapping HTTP requests are
    serialized per participant, but two humans driving debates against the same
    process still share a single pair of sessions.
    """

    def __init__(
        self,
        participants: list[Participant],
        providers: dict[str, AIProvider],
        prompts: PromptsConfig,
        max_history: int = 50,
        turn_delay_sec: float = 1.0,
        max_turns: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if len(participants) != 2:
            raise ValueError(f"Exactly two participants are required, got {len(participants)}")
        missing = [p.key for p in participants if p.key not in providers]
        if missing:
            raise ValueError(f"No provider for participant(s): {', '.join(missing)}")

        self._participants = {p.key: p for p in participants}
        self._providers = providers
        self._prompts = prompts
        self.turn_delay_sec = turn_delay_sec
        self.max_turns = max_turns
        self._rng = rng or random.Random()
        self._sessions = SessionStore(
            {p.key: providers[p.key].new_session(max_history) for p in participants}
        )
        self._locks = {p.key: asyncio.Lock() for p in participants}
        self._active_cancel: asyncio.Event | None = None

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def participants(self) -> list[Participant]:
        return list(self._participants.values())

    def participant(self, key: str) -> Participant:
        try:
            return self._participants[key]
        except KeyError:
            raise KeyError(f"Unknown participant '{key}'") from None

    def other(self, key: str) -> str:
        self.participant(key)
        return next(k for k in self._participants if k != key)

    def pick_starter(self) -> str:
        return self._rng.choice(list(self._participants))

    def opening_prompt(self, topic: str) -> str:
        return self._prompts.opening.format(topic=topic)

    def rebuttal_prompt(self, speaker: str, message: str) -> str:
        opponent = self.participant(self.other(speaker))
        return self._prompts.rebuttal.format(opponent=opponent.name, message=message)

    async def _speak(self, cursor: TurnCursor) -> ModelResponse:
        if not cursor.next_prompt.strip():
            raise ValueError("Prompt must not be empty")
        provider = self._providers[cursor.current]
        async with self._locks[cursor.current]:
            return await provider.generate(cursor.next_prompt, self._sessions.get(cursor.current))

    def _outcome(self, speaker: str, response: ModelResponse) -> TurnOutcome:
        return TurnOutcome(
            speaker=speaker,
            label=self.participant(speaker).label,
            response=response.content,
            next=self.other(speaker),
        )

    async def start(self, topic: str) -> TurnOutcome:
        """Pick the opening speaker at random and get its opening argument."""
        if not topic.strip():
            raise ValueError("Topic must not be empty")
        starter = self.pick_starter()
        logger.info("Debate starting with %s", starter)
        response = await self._speak(TurnCursor(current=starter, next_prompt=self.opening_prompt(topic)))
        return self._outcome(starter, response)

    async def respond(self, current: str, message: str) -> TurnOutcome:
        """Have `current` rebut `message`, which the other participant said."""
        if not message.strip():
            raise ValueError("Message must not be empty")
        prompt = self.rebuttal_prompt(current, message)
        response = await self._speak(TurnCursor(current=current, next_prompt=prompt))
        return self._outcome(current, response)

    async def run(
        self,
        topic: str,
        on_turn: Callable[[DialogueTurn], None] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[DialogueTurn]:
        """Run a whole debate until cancelled, max_turns is reached, or a provider fails.

        Args:
            topic: The human-supplied debate topic.
            on_turn: Optional callback invoked with each DialogueTurn as it is emitted.
            cancel: Optional event; setting it stops the run at the next turn boundary.

        Returns:
            The transcript, starting with the user's topic turn.

        Raises:
            ProviderError: If a provider call fails. Turns emitted so far were
                already delivered through on_turn.
        """
        if not topic.strip():
            raise ValueError("Topic must not be empty")
        cancel = cancel or asyncio.Event()
        self._active_cancel = cancel
        transcript: list[DialogueTurn] = []

        def emit(turn: DialogueTurn) -> None:
            transcript.append(turn)
            if on_turn:
                on_turn(turn)

        emit(DialogueTurn(speaker=USER_SPEAKER, text=topic))
        cursor = TurnCursor(current=self.pick_starter(), next_prompt=self.opening_prompt(topic))
        logger.info("Debate run starting with %s", cursor.current)
        spoken = 0

        try:
            while not cancel.is_set():
                if self.max_turns is not None and spoken >= self.max_turns:
                    logger.info("Reached max_turns (%d), stopping", self.max_turns)
                    break

                response = await self._speak(cursor)
                # A reply that lands after a pause is dropped, like the UI does.
                if cancel.is_set():
                    logger.info("Run cancelled during %s's turn; reply discarded", cursor.current)
                    break

                emit(DialogueTurn(speaker=cursor.current, text=response.content))
                spoken += 1
                cursor = TurnCursor(
                    current=self.other(cursor.current),
                    next_prompt=self.rebuttal_prompt(self.other(cursor.current), response.content),
                )

                if self.turn_delay_sec > 0 and not cancel.is_set():
                    try:
                        await asyncio.wait_for(cancel.wait(), timeout=self.turn_delay_sec)
                    except TimeoutError:
                        pass
        finally:
            if self._active_cancel is cancel:
                self._active_cancel = None

        logger.info("Debate run finished after %d turn(s)", spoken)
        return transcript

    def cancel(self) -> None:
        """Ask the active run to stop at the next turn boundary."""
        if self._active_cancel is not None:
            self._active_cancel.set()

    def reset(self) -> None:
        """Forget both participants' history. Safe while a call is in flight."""
        self._sessions.invalidate_all()
        logger.info("Conversation history reset")

    def pause(self) -> None:
        self.cancel()
        self.reset()
