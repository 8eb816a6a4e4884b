"""Click CLI — loads config, builds providers, serves the API or runs a debate in the terminal."""

import asyncio
import logging
import signal
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from duel.models import DialogueTurn, Participant
from duel.orchestrator import DebateOrchestrator
from duel.output import print_summary, print_turn
from duel.providers.base import AIProvider, ProviderError
from duel.providers.gemini import GeminiProvider
from duel.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "google-genai": GeminiProvider,
    "openai": OpenAIProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_or_exit() -> AppConfig:
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)


def _participants(config: AppConfig) -> list[Participant]:
    return [
        Participant(key=p.key, name=p.name, label=p.label)
        for p in config.participants.values()
    ]


def _build_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build one provider per participant. Raises ProviderError on missing keys or unknown SDKs."""
    providers: dict[str, AIProvider] = {}
    for key, participant in config.participants.items():
        model_cfg = config.models[key]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            raise ProviderError(key, f"Unknown sdk '{model_cfg.sdk}'")
        if key not in config.available_providers:
            raise ProviderError(key, f"Missing API key: {model_cfg.api_key_env}")
        providers[key] = provider_cls(model_cfg, system_prompt=participant.persona)
    return providers


def _build_orchestrator(
    config: AppConfig,
    providers: dict[str, AIProvider],
    max_turns: int | None = None,
    turn_delay_sec: float | None = None,
) -> DebateOrchestrator:
    return DebateOrchestrator(
        participants=_participants(config),
        providers=providers,
        prompts=config.prompts,
        max_history=config.defaults.max_history,
        turn_delay_sec=turn_delay_sec if turn_delay_sec is not None else config.defaults.turn_delay_sec,
        max_turns=max_turns if max_turns is not None else config.defaults.max_turns,
    )


def _providers_or_exit(config: AppConfig) -> dict[str, AIProvider]:
    try:
        return _build_providers(config)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}. Check API keys in .env.")
        sys.exit(1)


@click.group()
def main() -> None:
    """AI Duel -- two chat models debate a topic, turn by turn.

    \b
    Examples:
      ai-duel serve --port 3000
      ai-duel debate "Is remote work better than office work?"
      ai-duel debate "Tabs or spaces?" --max-turns 6
    """
    load_dotenv()


@main.command()
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", default=None, type=int, help="Listen port (default: $PORT or config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def serve(host: str | None, port: int | None, verbose: bool) -> None:
    """Serve the debate HTTP API."""
    import uvicorn

    from duel.server import create_app

    _setup_logging(verbose)
    config = _load_or_exit()
    orchestrator = _build_orchestrator(config, _providers_or_exit(config))
    app = create_app(orchestrator, config.server.allowed_origin)

    effective_host = host or config.server.host
    effective_port = port or config.server.port
    logger.info("Allowing origin %s", config.server.allowed_origin)
    uvicorn.run(app, host=effective_host, port=effective_port)


async def _run_debate(orchestrator: DebateOrchestrator, topic: str) -> tuple[list[DialogueTurn], str]:
    loop = asyncio.get_running_loop()
    paused = False

    def on_interrupt() -> None:
        nonlocal paused
        paused = True
        console.print("[yellow]Pausing after the current turn...[/yellow]")
        orchestrator.pause()

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported here; Ctrl-C aborts immediately")

    participants = orchestrator.participants
    try:
        transcript = await orchestrator.run(topic, on_turn=lambda turn: print_turn(turn, participants))
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass

    if paused:
        return transcript, "paused"
    return transcript, f"reached max turns ({orchestrator.max_turns})"


@main.command()
@click.argument("topic")
@click.option("--max-turns", default=None, type=int, help="Stop after N model turns (default: from config, unbounded)")
@click.option("--delay", "turn_delay_sec", default=None, type=float, help="Seconds between turns (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def debate(topic: str, max_turns: int | None, turn_delay_sec: float | None, verbose: bool) -> None:
    """Run a debate on TOPIC in the terminal. Press Ctrl-C to pause."""
    if not topic.strip():
        raise click.BadParameter("topic must not be empty", param_hint="TOPIC")
    if max_turns is not None and max_turns < 1:
        raise click.BadParameter("must be at least 1", param_hint="--max-turns")

    _setup_logging(verbose)
    config = _load_or_exit()
    orchestrator = _build_orchestrator(config, _providers_or_exit(config), max_turns, turn_delay_sec)

    try:
        transcript, stopped_by = asyncio.run(_run_debate(orchestrator, topic))
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    print_summary(transcript, stopped_by)


if __name__ == "__main__":
    main()
