"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    temperature: float | None = None
    top_p: float | None = None
    base_url: str | None = None


@dataclass
class ParticipantConfig:
    key: str
    name: str
    label: str
    persona: str


@dataclass
class PromptsConfig:
    opening: str
    rebuttal: str


@dataclass
class DefaultsConfig:
    max_history: int
    turn_delay_sec: float
    max_turns: int | None = None


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    allowed_origin: str = "http://localhost:5173"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    server: ServerConfig
    models: dict[str, ModelConfig]
    participants: dict[str, ParticipantConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if it does
    not describe exactly two participants backed by model entries.
    Logs missing API keys but does not raise. The CLI refuses to build a
    provider whose key is not in available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    max_turns_raw = defaults_raw.get("max_turns")
    defaults = DefaultsConfig(
        max_history=int(defaults_raw["max_history"]),
        turn_delay_sec=float(defaults_raw["turn_delay_sec"]),
        max_turns=int(max_turns_raw) if max_turns_raw is not None else None,
    )
    if defaults.max_history < 2:
        raise ValueError(f"max_history must be at least 2, got {defaults.max_history}")

    server_raw = raw.get("server", {})
    server = ServerConfig(
        host=str(server_raw.get("host", ServerConfig.host)),
        port=int(os.environ.get("PORT") or server_raw.get("port", ServerConfig.port)),
        allowed_origin=str(
            os.environ.get("FRONTEND_URL") or server_raw.get("allowed_origin", ServerConfig.allowed_origin)
        ),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        opening=prompts_raw["opening"],
        rebuttal=prompts_raw["rebuttal"],
    )

    participants: dict[str, ParticipantConfig] = {}
    for key, participant_raw in raw["participants"].items():
        participants[key] = ParticipantConfig(
            key=key,
            name=str(participant_raw["name"]),
            label=str(participant_raw.get("label", participant_raw["name"])),
            persona=str(participant_raw.get("persona", "")).strip(),
        )

    if len(participants) != 2:
        raise ValueError(f"Exactly two participants are required, got {len(participants)}")

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            temperature=model_raw.get("temperature"),
            top_p=model_raw.get("top_p"),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider unavailable (no API key): %s — set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    missing = [key for key in participants if key not in models]
    if missing:
        raise ValueError(f"No model configured for participant(s): {', '.join(missing)}")

    return AppConfig(
        defaults=defaults,
        server=server,
        models=models,
        participants=participants,
        prompts=prompts,
        available_providers=available_providers,
    )
