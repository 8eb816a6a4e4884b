"""Rich console rendering of debate turns."""

import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule

from duel.models import USER_SPEAKER, DialogueTurn, Participant

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_USER_LABEL = "🟢 User"
_BORDER_STYLES = ("cyan", "red")


def _title(text: str, max_len: int = 80) -> str:
    return text if len(text) <= max_len else text[:max_len] + "..."


def speaker_label(turn: DialogueTurn, participants: list[Participant]) -> str:
    if turn.speaker == USER_SPEAKER:
        return _USER_LABEL
    for participant in participants:
        if participant.key == turn.speaker:
            return participant.label
    return turn.speaker


def border_style(turn: DialogueTurn, participants: list[Participant]) -> str:
    keys = [p.key for p in participants]
    if turn.speaker in keys:
        return _BORDER_STYLES[keys.index(turn.speaker) % len(_BORDER_STYLES)]
    return "green"


def print_turn(turn: DialogueTurn, participants: list[Participant]) -> None:
    """Print one turn as a chat bubble."""
    if turn.speaker == USER_SPEAKER:
        console.print(Rule(f"[bold green]{escape(_title(turn.text))}[/bold green]"))
        return
    console.print(
        Panel(
            Markdown(turn.text),
            title=f"[bold]{speaker_label(turn, participants)}[/bold]",
            title_align="left",
            border_style=border_style(turn, participants),
        )
    )


def print_summary(transcript: list[DialogueTurn], stopped_by: str) -> None:
    spoken = sum(1 for t in transcript if t.speaker != USER_SPEAKER)
    console.print(f"[dim]{spoken} turn(s) — {stopped_by}[/dim]")
