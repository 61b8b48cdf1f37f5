"""Configuration dataclasses with sensible defaults. Optional YAML override via settings.yaml."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import yaml

from redraft.commands import DEFAULT_SEPARATOR, Command

logger = logging.getLogger(__name__)

# Project root (src/redraft/config.py → repository root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SETTINGS_PATH = PROJECT_ROOT / "settings.yaml"

DEFAULT_REWRITES: tuple[Command, ...] = (
    Command(
        name="Fix",
        command_word="fix",
        instructions=(
            "Fix spelling errors, grammar, formatting and capitalization; "
            "don't change content and style."
        ),
    ),
    Command(
        name="Improve",
        command_word="improve",
        instructions=(
            "Improve the text to enhance its writing quality while maintaining "
            "its original meaning and intent."
        ),
    ),
    Command(
        name="Explain",
        command_word="explain",
        instructions="Explain the code/text in a clear and concise language.",
    ),
    Command(
        name="Translate to english",
        command_word="entranslate",
        instructions="Translate the text to english.",
    ),
    Command(
        name="Shorten",
        command_word="short",
        instructions=(
            "Rewrite the text in a shorter, more concise form without losing key ideas. "
            "Maintain the original narrative perspective (e.g., first person if used)."
        ),
    ),
    Command(
        name="Work",
        command_word="work",
        instructions=(
            "Rewrite the following message to be clear and collaborative. Fix all spelling, grammar, "
            "formatting, and capitalization issues. Avoid blame, defensiveness, or retrospective "
            "justifications (e.g., references to having warned or said something before), unless "
            "strictly necessary, while keeping the original meaning intact. Where appropriate, "
            "introduce a gently positive and constructive undertone, emphasizing collaboration, "
            "openness, and forward momentum. If the message sounds overly pessimistic, make it "
            "slightly more uplifting without exaggeration or artificial optimism. You can even add "
            "a touch of humor to handle difficult situations. The tone should feel human, natural "
            "and warm, suitable for a workplace slack message, email or internal communication in "
            "a relatively casual professional environment; Avoid sounding cynical; Avoid em dashes, "
            "keep original text emojis if it makes sense to."
        ),
    ),
    Command(
        name="Shell",
        command_word="shell",
        instructions=(
            "Write a Unix shell command that performs the actions described in the text. "
            "Output only the command, with no additional text, and ensure it is ready to "
            "execute (do not include a ```bash prefix)."
        ),
    ),
    Command(
        name="SQL",
        command_word="sql",
        instructions=(
            "Write an SQL query that performs the actions described in the text. "
            "Output only the query, with no additional text, and ensure it is ready to "
            "execute (do not include a ```sql prefix)."
        ),
    ),
)


@dataclass(frozen=True)
class ModelConfig:
    provider: str = "openai"  # "openai", "anthropic" or "google-genai"
    model_id: str = "gpt-5.2"
    api_key: str = ""  # Empty → provider's environment variable
    max_tokens: int = 4096


@dataclass(frozen=True)
class HotkeyConfig:
    rewrite_shortcut: str = "<cmd>+<shift>+d"  # pynput GlobalHotKeys syntax


@dataclass(frozen=True)
class OutputConfig:
    ergonomic_mode: bool = False  # Simulate Cmd+C before and Cmd+V after a rewrite
    copy_delay_ms: int = 100  # Wait for the clipboard to update after Cmd+C
    min_busy_ms: int = 1000  # Keep the busy indicator visible at least this long


@dataclass(frozen=True)
class AppConfig:
    default_command: str = "fix"
    command_separator: str = DEFAULT_SEPARATOR
    rewrites: tuple[Command, ...] = DEFAULT_REWRITES
    model: ModelConfig = field(default_factory=ModelConfig)
    hotkey: HotkeyConfig = field(default_factory=HotkeyConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


_SECTIONS = {"model": ModelConfig, "hotkey": HotkeyConfig, "output": OutputConfig}
_TOP_LEVEL_KEYS = {"default_command", "command_separator", "rewrites", *_SECTIONS}


def _filter_keys(cls: type, raw: dict) -> dict:
    """Keep only keys that match dataclass fields, warn on unknown ones."""
    valid = {f.name for f in fields(cls)}
    unknown = set(raw) - valid
    if unknown:
        logger.warning("Ignoring unknown config keys for %s: %s", cls.__name__, ", ".join(sorted(unknown)))
    return {k: v for k, v in raw.items() if k in valid}


def _parse_rewrites(raw: object) -> tuple[Command, ...]:
    """Build Command records from the YAML list, skipping malformed entries."""
    if not isinstance(raw, list):
        logger.warning("'rewrites' must be a list (got %s), using defaults", type(raw).__name__)
        return DEFAULT_REWRITES

    rewrites: list[Command] = []
    for entry in raw:
        if not isinstance(entry, dict):
            logger.warning("Skipping rewrite entry %r: not a mapping", entry)
            continue
        values = _filter_keys(Command, entry)
        if not all(isinstance(values.get(f.name), str) for f in fields(Command)):
            logger.warning("Skipping rewrite entry %r: name, command_word and instructions are required", entry)
            continue
        rewrites.append(Command(**values))
    return tuple(rewrites)


def _string_setting(raw: dict, key: str, default: str) -> str:
    """Read a top-level string setting, falling back to the default when null or not a string."""
    value = raw.get(key, default)
    if not isinstance(value, str):
        logger.warning("'%s' must be a string (got %r), using default %r", key, value, default)
        return default
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults for missing fields."""
    if config_path is None:
        config_path = DEFAULT_SETTINGS_PATH

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        unknown = set(raw) - _TOP_LEVEL_KEYS
        if unknown:
            logger.warning("Ignoring unknown top-level config keys: %s", ", ".join(sorted(unknown)))

        defaults = AppConfig()
        cfg = AppConfig(
            default_command=_string_setting(raw, "default_command", defaults.default_command),
            command_separator=_string_setting(raw, "command_separator", defaults.command_separator),
            rewrites=_parse_rewrites(raw["rewrites"]) if "rewrites" in raw else defaults.rewrites,
            model=ModelConfig(**_filter_keys(ModelConfig, raw.get("model") or {})),
            hotkey=HotkeyConfig(**_filter_keys(HotkeyConfig, raw.get("hotkey") or {})),
            output=OutputConfig(**_filter_keys(OutputConfig, raw.get("output") or {})),
        )

        # Validate max_tokens
        if not isinstance(cfg.model.max_tokens, int) or cfg.model.max_tokens <= 0:
            logger.warning("max_tokens must be a positive integer (got %r), resetting to 4096", cfg.model.max_tokens)
            model_kwargs = {k: v for k, v in vars(cfg.model).items() if k != "max_tokens"}
            cfg = AppConfig(
                default_command=cfg.default_command,
                command_separator=cfg.command_separator,
                rewrites=cfg.rewrites,
                model=ModelConfig(**model_kwargs),
                hotkey=cfg.hotkey,
                output=cfg.output,
            )

        return cfg
    except Exception:
        logger.warning("Failed to parse %s, using defaults", config_path, exc_info=True)
        return AppConfig()


def save_config(config: AppConfig, config_path: Path | None = None) -> None:
    """Write settings to YAML, creating parent dirs if needed."""
    if config_path is None:
        config_path = DEFAULT_SETTINGS_PATH

    data = asdict(config)
    data["rewrites"] = [asdict(c) for c in config.rewrites]

    logger.debug("Persisting settings to %s", config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
