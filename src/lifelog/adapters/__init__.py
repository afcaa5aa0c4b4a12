"""Ingestion adapters for lifelog sources.

Each adapter implements the IngestAdapter ABC and turns one raw source item
into a ``DestinationRecord``:
- reads the source's unique id and raw date
- runs the date through the configured normalization pipeline
- maps source fields onto destination property keys

Available adapters:
    OuraAdapter      — Oura sleep sessions
    StravaAdapter    — Strava activities
    WithingsAdapter  — Withings scale measure groups
    SteamAdapter     — Steam play sessions
    GitHubAdapter    — GitHub per-repository daily activity
"""

from src.lifelog.adapters.github import GitHubAdapter
from src.lifelog.adapters.oura import OuraAdapter
from src.lifelog.adapters.steam import SteamAdapter
from src.lifelog.adapters.strava import StravaAdapter
from src.lifelog.adapters.withings import WithingsAdapter
from src.lifelog.base import IngestAdapter
from src.lifelog.errors import ConfigurationError

__all__ = [
    "OuraAdapter",
    "StravaAdapter",
    "WithingsAdapter",
    "SteamAdapter",
    "GitHubAdapter",
]

# Registry: source key → adapter class
ADAPTER_REGISTRY: dict[str, type[IngestAdapter]] = {
    "oura": OuraAdapter,
    "strava": StravaAdapter,
    "withings": WithingsAdapter,
    "steam": SteamAdapter,
    "github": GitHubAdapter,
}


def get_adapter(source_id: str) -> type[IngestAdapter]:
    """Return the adapter class for a given source key.

    Args:
        source_id: e.g. 'oura', 'strava', 'withings', 'steam', 'github'

    Returns:
        The adapter class (not an instance).

    Raises:
        ConfigurationError: If the source_id is not registered.
    """
    if source_id not in ADAPTER_REGISTRY:
        raise ConfigurationError(
            f"No adapter registered for source '{source_id}'. "
            f"Available: {list(ADAPTER_REGISTRY)}"
        )
    return ADAPTER_REGISTRY[source_id]
