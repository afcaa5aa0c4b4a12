"""Load and validate the lifelog sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  It is loaded
once at startup into a ``SyncConfig`` and injected into every component;
there is no hot reload.

Database and calendar ids are resolved from environment variable names while
loading, so the YAML itself never carries secrets.

Usage::

    from src.lifelog.config_loader import load_sync_config

    config = load_sync_config()
    config.integration("oura").database_id
    config.rate_limit("notion").delay_s       # 0.35
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from src.lifelog.calendar_resolver import CalendarIdResolver, CalendarMapping, MappingKind
from src.lifelog.date_normalizer import DateHandling, DateNormalizer, ExtractionMethod, SourceFormat
from src.lifelog.errors import ConfigurationError
from src.lifelog.properties import PropertyConfig, PropertyDescriptor, PropertyType
from src.lifelog.record_store import DatabaseDescriptor, UniqueIdType

logger = logging.getLogger("lifelog.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimit:
    """Fixed inter-request delay for one service."""

    backoff_ms: int
    requests_per_minute: int | None = None
    requests_per_second: int | None = None

    @property
    def delay_s(self) -> float:
        return self.backoff_ms / 1000


@dataclass(frozen=True)
class RetryConfig:
    """Bounded exponential backoff for transient transport failures."""

    max_retries: int = 3
    initial_backoff_ms: int = 1000
    max_backoff_ms: int = 10000
    backoff_multiplier: float = 2.0
    retryable_status_codes: tuple[int, ...] = (429, 500, 502, 503, 504)

    def backoff_s(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based), capped."""
        delay_ms = self.initial_backoff_ms * (self.backoff_multiplier ** attempt)
        return min(delay_ms, self.max_backoff_ms) / 1000

    @property
    def max_backoff_s(self) -> float:
        return self.max_backoff_ms / 1000


@dataclass
class IntegrationConfig:
    """One source and its destination database.

    Attributes:
        key:              Source key (e.g. 'oura').
        display_name:     Human-readable name.
        database_id:      Resolved destination database id, or None if unset.
        descriptor:       Identity/date/status property keys.
        properties:       Property registry and field mappings.
        calendar_mapping: Key into ``SyncConfig.calendar_mappings``.
        rate_limit:       Key into ``SyncConfig.rate_limits`` for the source API.
    """

    key: str
    display_name: str
    database_id: str | None
    descriptor: DatabaseDescriptor
    properties: PropertyConfig
    calendar_mapping: str | None = None
    rate_limit: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.database_id)


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    This is the single in-memory representation of sync_config.yaml.

    Attributes:
        version:          Config schema version string.
        timezone:         IANA zone for canonical dates and timed events.
        rate_limits:      Service key → RateLimit.
        retry:            Transient failure retry settings.
        date_handling:    Source key → DateHandling.
        integrations:     Source key → IntegrationConfig.
        calendar_mappings: Mapping key → CalendarMapping (ids resolved).
    """

    version: str
    timezone: str
    rate_limits: dict[str, RateLimit]
    retry: RetryConfig
    date_handling: dict[str, DateHandling]
    integrations: dict[str, IntegrationConfig]
    calendar_mappings: dict[str, CalendarMapping]
    _raw: dict = field(default_factory=dict, repr=False)

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def integration(self, key: str) -> IntegrationConfig:
        """Return the integration for a source key.

        Raises:
            ConfigurationError: If the source is not configured.
        """
        try:
            return self.integrations[key]
        except KeyError:
            raise ConfigurationError(f"Unknown source: {key}") from None

    def rate_limit(self, key: str | None) -> RateLimit:
        """Return a service's rate limit; unknown services get no delay."""
        if key is None:
            return RateLimit(backoff_ms=0)
        return self.rate_limits.get(key) or RateLimit(backoff_ms=0)

    def configured_sources(self) -> list[str]:
        """Source keys whose database id is set, in config order."""
        return [k for k, i in self.integrations.items() if i.is_configured]

    def normalizer(self) -> DateNormalizer:
        return DateNormalizer(self.date_handling, self.timezone)

    def resolver(self) -> CalendarIdResolver:
        return CalendarIdResolver(self.calendar_mappings)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"YAML parse error in {path}: {exc}") from exc


def _resolve_id(entry: dict, literal_key: str, env_key: str, environ: Mapping[str, str]) -> str | None:
    """A literal id wins over an environment variable name."""
    if entry.get(literal_key):
        return str(entry[literal_key])
    env_name = entry.get(env_key)
    if env_name:
        return environ.get(env_name) or None
    return None


def _build_rate_limits(raw: dict, errors: list[str]) -> dict[str, RateLimit]:
    limits: dict[str, RateLimit] = {}
    for service, cfg in (raw or {}).items():
        if not isinstance(cfg, dict) or "backoff_ms" not in cfg:
            errors.append(f"rate_limits.{service} must be a mapping with 'backoff_ms'")
            continue
        try:
            backoff = int(cfg["backoff_ms"])
        except (TypeError, ValueError):
            errors.append(f"rate_limits.{service}.backoff_ms must be an integer")
            continue
        if backoff < 0:
            errors.append(f"rate_limits.{service}.backoff_ms must not be negative")
            continue
        limits[service] = RateLimit(
            backoff_ms=backoff,
            requests_per_minute=cfg.get("requests_per_minute"),
            requests_per_second=cfg.get("requests_per_second"),
        )
    return limits


def _build_retry(raw: dict, errors: list[str]) -> RetryConfig:
    raw = raw or {}
    try:
        retry = RetryConfig(
            max_retries=int(raw.get("max_retries", 3)),
            initial_backoff_ms=int(raw.get("initial_backoff_ms", 1000)),
            max_backoff_ms=int(raw.get("max_backoff_ms", 10000)),
            backoff_multiplier=float(raw.get("backoff_multiplier", 2)),
            retryable_status_codes=tuple(
                int(c) for c in raw.get("retryable_status_codes", (429, 500, 502, 503, 504))
            ),
        )
    except (TypeError, ValueError) as exc:
        errors.append(f"retry section is invalid: {exc}")
        return RetryConfig()
    if retry.max_retries < 0:
        errors.append("retry.max_retries must not be negative")
    if retry.initial_backoff_ms > retry.max_backoff_ms:
        errors.append("retry.initial_backoff_ms must not exceed retry.max_backoff_ms")
    return retry


def _build_date_handling(raw: dict, errors: list[str]) -> dict[str, DateHandling]:
    handlers: dict[str, DateHandling] = {}
    for source, cfg in (raw or {}).items():
        if not isinstance(cfg, dict):
            errors.append(f"date_handling.{source} must be a mapping")
            continue
        try:
            handlers[source] = DateHandling(
                source_format=SourceFormat(cfg.get("source_format")),
                extraction_method=ExtractionMethod(cfg.get("extraction_method")),
                date_offset=int(cfg.get("date_offset", 0)),
            )
        except (ValueError, TypeError, ConfigurationError) as exc:
            errors.append(f"date_handling.{source}: {exc}")
    return handlers


def _build_calendar_mappings(
    raw: dict, environ: Mapping[str, str], errors: list[str]
) -> dict[str, CalendarMapping]:
    mappings: dict[str, CalendarMapping] = {}
    for key, cfg in (raw or {}).items():
        if not isinstance(cfg, dict):
            errors.append(f"calendar_mappings.{key} must be a mapping")
            continue
        try:
            kind = MappingKind(cfg.get("type"))
        except ValueError:
            errors.append(f"calendar_mappings.{key}.type {cfg.get('type')!r} is not a known mapping type")
            continue

        table = {
            str(value): (environ.get(env_name) or None) if env_name else None
            for value, env_name in (cfg.get("mappings") or {}).items()
        }
        try:
            mappings[key] = CalendarMapping(
                kind=kind,
                calendar_id=_resolve_id(cfg, "calendar_id", "calendar_env", environ),
                routing_property=cfg.get("routing_property"),
                mappings=table,
            )
        except ConfigurationError as exc:
            errors.append(f"calendar_mappings.{key}: {exc}")
    return mappings


def _build_properties(source: str, cfg: dict, errors: list[str]) -> PropertyConfig | None:
    descriptors: dict[str, PropertyDescriptor] = {}
    for key, prop in (cfg.get("properties") or {}).items():
        if not isinstance(prop, dict) or "name" not in prop:
            errors.append(f"integrations.{source}.properties.{key} needs a 'name'")
            continue
        try:
            ptype = PropertyType(prop.get("type"))
        except ValueError:
            errors.append(
                f"integrations.{source}.properties.{key}.type {prop.get('type')!r} is not supported"
            )
            continue
        descriptors[key] = PropertyDescriptor(
            name=str(prop["name"]),
            type=ptype,
            enabled=bool(prop.get("enabled", True)),
            options=tuple(prop.get("options") or ()),
        )
    if not descriptors:
        errors.append(f"integrations.{source}.properties is missing or empty")
        return None
    try:
        return PropertyConfig(
            source=source,
            descriptors=descriptors,
            field_mappings=dict(cfg.get("field_mappings") or {}),
        )
    except ConfigurationError as exc:
        errors.append(f"integrations.{source}: {exc}")
        return None


def _build_descriptor(source: str, raw: dict, properties: PropertyConfig, errors: list[str]) -> DatabaseDescriptor | None:
    raw = raw or {}
    if "date_property" not in raw:
        errors.append(f"Missing required key 'date_property' in section 'integrations.{source}.descriptor'")
        return None
    try:
        descriptor = DatabaseDescriptor(
            date_property=raw["date_property"],
            unique_id_property=raw.get("unique_id_property"),
            unique_id_type=UniqueIdType(raw.get("unique_id_type", "text")),
            status_property=raw.get("status_property"),
            calendar_event_id_property=raw.get("calendar_event_id_property"),
        )
    except (ValueError, ConfigurationError) as exc:
        errors.append(f"integrations.{source}.descriptor: {exc}")
        return None

    # Every property the descriptor names must exist in the registry
    for attr in ("date_property", "unique_id_property", "status_property", "calendar_event_id_property"):
        key = getattr(descriptor, attr)
        if key and key not in properties.descriptors:
            errors.append(
                f"integrations.{source}.descriptor.{attr} references unknown property '{key}'"
            )
    return descriptor


def _validate_and_build(raw: dict, environ: Mapping[str, str]) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Every problem found is collected and reported together.

    Raises:
        ConfigurationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    timezone = raw.get("timezone")
    if not timezone:
        errors.append("'timezone' is missing")
        timezone = "UTC"

    rate_limits = _build_rate_limits(raw.get("rate_limits", {}), errors)
    retry = _build_retry(raw.get("retry", {}), errors)
    date_handling = _build_date_handling(raw.get("date_handling", {}), errors)
    calendar_mappings = _build_calendar_mappings(raw.get("calendar_mappings", {}), environ, errors)

    # ── Integrations ──
    integrations_raw = raw.get("integrations", {})
    if not integrations_raw:
        errors.append("'integrations' section is missing or empty")

    integrations: dict[str, IntegrationConfig] = {}
    for source, cfg in (integrations_raw or {}).items():
        if not isinstance(cfg, dict):
            errors.append(f"integrations.{source} must be a mapping")
            continue
        properties = _build_properties(source, cfg, errors)
        if properties is None:
            continue
        descriptor = _build_descriptor(source, cfg.get("descriptor"), properties, errors)
        if descriptor is None:
            continue

        if source not in date_handling:
            errors.append(f"integrations.{source} has no date_handling entry")
        mapping_key = cfg.get("calendar_mapping")
        if mapping_key and mapping_key not in calendar_mappings:
            errors.append(
                f"integrations.{source}.calendar_mapping '{mapping_key}' is not defined"
            )

        integrations[source] = IntegrationConfig(
            key=source,
            display_name=cfg.get("display_name", source),
            database_id=_resolve_id(cfg, "database_id", "database_env", environ),
            descriptor=descriptor,
            properties=properties,
            calendar_mapping=mapping_key,
            rate_limit=cfg.get("rate_limit"),
        )

    if errors:
        raise ConfigurationError(
            f"sync config has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    # Fail at startup rather than on the first record
    DateNormalizer(date_handling, timezone)

    return SyncConfig(
        version=version,
        timezone=timezone,
        rate_limits=rate_limits,
        retry=retry,
        date_handling=date_handling,
        integrations=integrations,
        calendar_mappings=calendar_mappings,
        _raw=raw,
    )


def load_sync_config(
    path: Path | str | None = None, environ: Mapping[str, Any] | None = None
) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path:    Override path to YAML. Uses the bundled sync_config.yaml by default.
        environ: Mapping used to resolve ``*_env`` ids. Defaults to ``os.environ``.

    Returns:
        Validated SyncConfig instance.
    """
    target = Path(path) if path else _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw, os.environ if environ is None else environ)
    missing = [k for k, i in config.integrations.items() if not i.is_configured]
    if missing:
        logger.info("No database id set for: %s", ", ".join(missing))
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config

