"""Configuration management for asynccond.

Settings only harden or instrument runs; the control-flow semantics of
``series``, ``each_series`` and ``seq`` are the same under every setting
except ``stop_on_falsy_items``.

Resolution order: explicit argument > environment > config file > defaults

- ~/.config/asynccond/config.json holds persisted settings
- ASYNCCOND_* environment variables override single fields
"""

import json
import logging
import os
import stat
from dataclasses import dataclass, fields
from pathlib import Path

from ..models.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ASYNCCOND_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _secure_write_json(path: Path, data: dict) -> None:
    """Write JSON to file with restricted permissions (0600)."""
    content = json.dumps(data, indent=2)
    temp_path = path.with_suffix(".tmp")
    try:
        fd = os.open(str(temp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            os.write(fd, content.encode())
        finally:
            os.close(fd)
        temp_path.replace(path)
    except OSError:
        path.write_text(content)
        try:
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except OSError:
            pass  # Best effort on systems that don't support chmod


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(
        f"Invalid boolean for {name}: {raw!r}",
        suggestion="use one of 1/0, true/false, yes/no, on/off",
    )


@dataclass
class FlowSettings:
    """Settings applied to series, each_series and seq runs.

    Fields set to None are unset and fall through to the next tier
    when merged; ``resolved()`` fills them with defaults.
    """

    # Raise ContinuationError on a second call instead of ignoring it
    strict_continuations: bool | None = None
    # Report exceptions raised by a step as that step's error
    capture_exceptions: bool | None = None
    # Legacy each_series behaviour: stop at the first falsy item
    stop_on_falsy_items: bool | None = None
    # Publish run events on the EventBus
    emit_events: bool | None = None

    DEFAULTS = {
        "strict_continuations": False,
        "capture_exceptions": False,
        "stop_on_falsy_items": False,
        "emit_events": True,
    }

    def to_dict(self) -> dict:
        """Serialize, omitting unset fields."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "FlowSettings":
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        kwargs = {}
        for name, value in data.items():
            if value is not None and not isinstance(value, bool):
                raise ConfigError(f"Setting {name} must be a boolean, got {value!r}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "FlowSettings":
        """Read ASYNCCOND_* overrides from the environment.

        Malformed values are logged and left unset, like an invalid
        config file.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in environ:
                continue
            try:
                kwargs[f.name] = _parse_bool(key, environ[key])
            except ConfigError as e:
                logger.warning(f"Ignoring environment override: {e}")
        return cls(**kwargs)

    def merge_with(self, override: "FlowSettings") -> "FlowSettings":
        """Return new settings with override's set fields taking precedence."""
        merged = {}
        for f in fields(self):
            value = getattr(override, f.name)
            merged[f.name] = value if value is not None else getattr(self, f.name)
        return FlowSettings(**merged)

    def resolved(self) -> "FlowSettings":
        """Return settings with every unset field filled from defaults."""
        return FlowSettings(**self.DEFAULTS).merge_with(self)


class ConfigManager:
    """Loads persisted settings and layers environment overrides on top."""

    def __init__(self, config_dir: Path | None = None, environ: dict[str, str] | None = None):
        if config_dir is None:
            config_dir = Path.home() / ".config" / "asynccond"
        self._config_dir = config_dir
        self._config_file = config_dir / "config.json"
        self._environ = environ
        self._file_settings: FlowSettings | None = None

    @property
    def config_file(self) -> Path:
        return self._config_file

    @property
    def file_settings(self) -> FlowSettings:
        if self._file_settings is None:
            self._file_settings = self._load_file()
        return self._file_settings

    def _load_file(self) -> FlowSettings:
        """Load settings from disk, falling back to empty settings."""
        if not self._config_file.exists():
            return FlowSettings()
        try:
            data = json.loads(self._config_file.read_text())
            return FlowSettings.from_dict(data)
        except (json.JSONDecodeError, ConfigError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring invalid config file {self._config_file}: {e}")
            return FlowSettings()

    def save(self, settings: FlowSettings) -> None:
        """Persist settings with secure permissions."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        _secure_write_json(self._config_file, settings.to_dict())
        self._file_settings = settings

    def resolve(self, override: FlowSettings | None = None) -> FlowSettings:
        """Resolve settings: override > environment > file > defaults."""
        settings = self.file_settings.merge_with(FlowSettings.from_env(self._environ))
        if override is not None:
            settings = settings.merge_with(override)
        return settings.resolved()


_default_manager: ConfigManager | None = None


def default_settings() -> FlowSettings:
    """Settings used when a run is started without explicit settings."""
    global _default_manager
    if _default_manager is None:
        _default_manager = ConfigManager()
    return _default_manager.resolve()


def reset_default_settings() -> None:
    """Forget cached settings (for testing)."""
    global _default_manager
    _default_manager = None


def resolve_settings(settings: FlowSettings | None) -> FlowSettings:
    """Fill an explicit settings object from the default tiers."""
    if settings is None:
        return default_settings()
    return default_settings().merge_with(settings).resolved()
