"""Settings management for specimen.

Settings are typed key/value pairs (collection sizes, max depth, toggles).

Resolution order (highest priority first):
1. Call-site overrides (``Blueprint.with_settings`` / ``with_setting``)
2. Injected overrides (``use_settings()`` context, pytest marker)
3. Global defaults: programmatic ``configure()``, else
   env vars (SPECIMEN_MAX_DEPTH, ...) > config file
   (~/.config/specimen/config.json) > built-in defaults

Every layer is validated against the declared type of each key.
"""

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from functools import lru_cache
from typing import Annotated, Any, Iterator, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from .errors import SettingsError

logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "specimen"
CONFIG_FILE = CONFIG_DIR / "config.json"
ENV_PREFIX = "SPECIMEN_"


# =============================================================================
# Keys and typed values
# =============================================================================


class Keys:
    """Known settings keys.

    Use these constants instead of bare strings:
        Settings.create().set(Keys.MAX_DEPTH, 3)
    """

    COLLECTION_MIN_SIZE = "collection_min_size"
    COLLECTION_MAX_SIZE = "collection_max_size"
    MAP_MIN_SIZE = "map_min_size"
    MAP_MAX_SIZE = "map_max_size"
    STRING_MIN_LENGTH = "string_min_length"
    STRING_MAX_LENGTH = "string_max_length"
    STRING_FIELD_PREFIX_ENABLED = "string_field_prefix_enabled"
    INT_MIN = "int_min"
    INT_MAX = "int_max"
    FLOAT_MIN = "float_min"
    FLOAT_MAX = "float_max"
    TEMPORAL_MIN = "temporal_min"
    TEMPORAL_MAX = "temporal_max"
    MAX_DEPTH = "max_depth"
    MAX_SELF_REFERENCES = "max_self_references"
    NULLABLE_PROBABILITY = "nullable_probability"
    MAX_GENERATION_ATTEMPTS = "max_generation_attempts"
    AFTER_GENERATE = "after_generate"
    CONSTRAINTS_ENABLED = "constraints_enabled"
    FEED_EXHAUSTION = "feed_exhaustion"
    FAIL_ON_UNUSED_SELECTORS = "fail_on_unused_selectors"
    SEED = "seed"


class SettingsValues(BaseModel):
    """A fully resolved, immutable settings snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    collection_min_size: int = Field(default=2, ge=0)
    collection_max_size: int = Field(default=6, ge=0)
    map_min_size: int = Field(default=2, ge=0)
    map_max_size: int = Field(default=6, ge=0)
    string_min_length: int = Field(default=3, ge=0)
    string_max_length: int = Field(default=10, ge=0)
    string_field_prefix_enabled: bool = False
    int_min: int = 1
    int_max: int = 10_000
    float_min: float = 1.0
    float_max: float = 10_000.0
    temporal_min: datetime = datetime(1970, 1, 1)
    temporal_max: datetime = datetime(2050, 12, 31)
    max_depth: int = Field(default=8, ge=0)
    # None = only the depth guard applies to self-referencing types
    max_self_references: int | None = Field(default=None, ge=0)
    nullable_probability: float = Field(default=1 / 6, gt=0.0, le=1.0)
    max_generation_attempts: int = Field(default=1000, ge=1)
    after_generate: Literal["populate_nulls", "do_not_modify"] = "populate_nulls"
    constraints_enabled: bool = False
    feed_exhaustion: Literal["fail", "cycle"] = "fail"
    fail_on_unused_selectors: bool = False
    seed: int | None = None

    @model_validator(mode="after")
    def _check_ranges(self) -> "SettingsValues":
        for low, high in (
            ("collection_min_size", "collection_max_size"),
            ("map_min_size", "map_max_size"),
            ("string_min_length", "string_max_length"),
            ("int_min", "int_max"),
            ("float_min", "float_max"),
            ("temporal_min", "temporal_max"),
        ):
            if getattr(self, low) > getattr(self, high):
                raise ValueError(
                    f"{low}={getattr(self, low)!r} is greater than "
                    f"{high}={getattr(self, high)!r}"
                )
        return self


@lru_cache(maxsize=None)
def _adapter(key: str) -> TypeAdapter:
    field_info = SettingsValues.model_fields[key]
    if field_info.metadata:
        return TypeAdapter(Annotated[(field_info.annotation, *field_info.metadata)])
    return TypeAdapter(field_info.annotation)


def _validate_value(key: str, value: Any) -> Any:
    """Validate a single key/value against its declared type.

    Cross-key range checks happen when layers are resolved.
    """
    if key not in SettingsValues.model_fields:
        raise SettingsError(f"Unknown settings key: {key!r}")
    try:
        return _adapter(key).validate_python(value)
    except ValidationError as exc:
        raise SettingsError(
            f"Invalid value for {key!r}: {value!r} ({exc.errors()[0]['msg']})"
        ) from exc


# =============================================================================
# Settings layer
# =============================================================================


class Settings:
    """One layer of settings overrides.

    Examples:
        settings = Settings.create().set(Keys.COLLECTION_MIN_SIZE, 5).lock()
        specimen.of(Person).with_settings(settings).create()
    """

    def __init__(self, values: dict[str, Any] | None = None):
        self._values: dict[str, Any] = {}
        self._locked = False
        for key, value in (values or {}).items():
            self.set(key, value)

    @classmethod
    def create(cls) -> "Settings":
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        return cls(data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Settings":
        """Load a settings layer from a YAML mapping of key -> value."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise SettingsError(f"Settings file {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {path} must contain a mapping")
        return cls(data)

    def __repr__(self) -> str:
        state = ", locked" if self._locked else ""
        return f"Settings({self._values!r}{state})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Settings):
            return NotImplemented
        return self._values == other._values

    def set(self, key: str, value: Any) -> "Settings":
        if self._locked:
            raise SettingsError("Settings are locked and cannot be modified")
        self._values[key] = _validate_value(key, value)
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def lock(self) -> "Settings":
        self._locked = True
        return self

    @property
    def is_locked(self) -> bool:
        return self._locked

    def merge(self, other: "Settings | None") -> "Settings":
        """Return a new layer where ``other`` overrides this one."""
        merged = Settings(self._values)
        if other is not None:
            merged._values.update(other._values)
        return merged

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


# =============================================================================
# Global defaults
# =============================================================================

_global: SettingsValues | None = None


def _load_global() -> SettingsValues:
    """Built-in defaults, then config file, then env var overrides."""
    data: dict[str, Any] = {}

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                for key, value in loaded.items():
                    if key in SettingsValues.model_fields:
                        data[key] = value
                    else:
                        logger.warning("Ignoring unknown key %r in %s", key, CONFIG_FILE)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load settings from %s: %s", CONFIG_FILE, exc)

    for key in SettingsValues.model_fields:
        env_name = ENV_PREFIX + key.upper()
        if (val := os.environ.get(env_name)) is None:
            continue
        try:
            data[key] = _validate_value(key, val)
        except SettingsError:
            logger.warning("Invalid %s=%r, ignoring", env_name, val)

    try:
        return SettingsValues.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid global settings, using defaults: %s", exc)
        return SettingsValues()


def get_settings() -> SettingsValues:
    """Get the global settings snapshot.

    First call loads from config file + env vars; later calls return the cached value.
    """
    global _global
    if _global is None:
        _global = _load_global()
    return _global


def configure(settings: Settings | dict[str, Any] | SettingsValues) -> None:
    """Replace the global defaults programmatically."""
    global _global
    if isinstance(settings, SettingsValues):
        _global = settings
        return
    if isinstance(settings, dict):
        settings = Settings(settings)
    _global = _apply(SettingsValues(), [settings])


def reset_settings() -> None:
    """Forget the global snapshot (reloaded on next get_settings())."""
    global _global
    _global = None


def save_settings(settings: SettingsValues) -> None:
    """Persist non-default values to ~/.config/specimen/config.json."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    defaults = SettingsValues()
    data = {
        key: value
        for key, value in settings.model_dump(mode="json").items()
        if getattr(defaults, key) != getattr(settings, key)
    }
    with open(CONFIG_FILE, "w") as f:
        json.dump(data, f, indent=2)


# =============================================================================
# Injected overrides
# =============================================================================

_injected: ContextVar[Settings | None] = ContextVar("specimen_injected_settings", default=None)


@contextmanager
def use_settings(settings: Settings | dict[str, Any]) -> Iterator[Settings]:
    """Inject settings for every generation started inside the block.

    Nested blocks stack: inner values override outer ones.
    """
    if isinstance(settings, dict):
        settings = Settings(settings)
    outer = _injected.get()
    layer = outer.merge(settings) if outer is not None else settings
    token = _injected.set(layer)
    try:
        yield layer
    finally:
        _injected.reset(token)


def injected_settings() -> Settings | None:
    return _injected.get()


# =============================================================================
# Resolution
# =============================================================================


def _apply(base: SettingsValues, layers: list[Settings | None]) -> SettingsValues:
    data = base.model_dump()
    for layer in layers:
        if layer is not None:
            data.update(layer.as_dict())
    try:
        return SettingsValues.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(f"Inconsistent settings: {exc.errors()[0]['msg']}") from exc


def resolve_settings(call_site: Settings | None = None) -> SettingsValues:
    """Resolve call-site > injected > global into one snapshot."""
    return _apply(get_settings(), [injected_settings(), call_site])
