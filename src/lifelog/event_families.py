"""Calendar event families, one per source.

Each family is a ``TransformerConfig``; ``EventTransformerBuilder`` turns it
into the transformer the orchestrator runs over unsynced records.  Property
references are config keys from ``sync_config.yaml``.
"""

from __future__ import annotations

from src.lifelog.base import EventType
from src.lifelog.errors import ConfigurationError
from src.lifelog.event_builder import DateTimeRef, TransformerConfig

SLEEP_EVENTS = TransformerConfig(
    calendar_key="sleep",
    event_type=EventType.DATE_TIME,
    start_prop="bedtime",
    end_prop="wake_time",
    summary="Sleep - {{hours}}hrs ({{efficiency}}% efficiency)",
    description=(
        "Sleep Duration: {{hours}} hours\n"
        "Deep: {{deep}} min\n"
        "REM: {{rem}} min\n"
        "Light: {{light}} min\n"
        "Awake: {{awake}} min\n"
        "HRV: {{hrv}} ms\n"
        "Avg Heart Rate: {{heart_rate}} bpm"
    ),
    properties={
        "hours": "sleep_duration",
        "efficiency": "efficiency",
        "deep": "deep_sleep",
        "rem": "rem_sleep",
        "light": "light_sleep",
        "awake": "awake_time",
        "hrv": "hrv",
        "heart_rate": "heart_rate_avg",
    },
    fallback_summary="Sleep",
)

WORKOUT_EVENTS = TransformerConfig(
    calendar_key="workouts",
    event_type=EventType.DATE_TIME,
    start_prop=DateTimeRef(date="date", time="start_time"),
    end_from_duration="duration",
    summary="{{name}}",
    description=(
        "{{name}}\n"
        "Duration: {{duration}} minutes\n"
        "Activity Type: {{type}}\n"
        "Distance: {{distance}} mi"
    ),
    properties={
        "name": "name",
        "duration": "duration",
        "type": "type",
        "distance": "distance",
    },
    fallback_summary="Workout",
)


def _weight_summary(values: dict) -> str:
    weight = values.get("weight")
    return f"Weight: {weight:g} lbs" if weight else ""


BODY_WEIGHT_EVENTS = TransformerConfig(
    calendar_key="body_weight",
    event_type=EventType.ALL_DAY,
    start_prop="date",
    summary=_weight_summary,
    description=(
        "Weight: {{weight}} lbs\n"
        "Fat: {{fat_percentage}}%\n"
        "Muscle Mass: {{muscle_mass}} lbs\n"
        "Measured at {{measurement_time}}"
    ),
    properties={
        "weight": "weight",
        "fat_percentage": "fat_percentage",
        "muscle_mass": "muscle_mass",
        "measurement_time": "measurement_time",
    },
    fallback_summary="Weight Measurement",
)

GAME_EVENTS = TransformerConfig(
    calendar_key="games",
    event_type=EventType.DATE_TIME,
    start_prop=DateTimeRef(date="date", time="start_time"),
    end_prop=DateTimeRef(date="date", time="end_time"),
    summary="{{game_name}}",
    description=(
        "{{game_name}}\n"
        "Total Playtime: {{minutes}} minutes\n"
        "Sessions: {{sessions}}\n"
        "Session Times: {{details}}"
    ),
    properties={
        "game_name": "game_name",
        "minutes": "minutes_played",
        "sessions": "session_count",
        "details": "session_details",
    },
    fallback_summary="Gaming Session",
)

PR_EVENTS = TransformerConfig(
    calendar_key="prs",
    event_type=EventType.ALL_DAY,
    start_prop="date",
    summary="{{repository}}: {{commits}} commits",
    description=(
        "Commits: {{commits}}\n"
        "Pull Requests: {{prs}}\n"
        "Lines: +{{added}} / -{{deleted}}\n"
        "Files Changed: {{files}}\n\n"
        "{{messages}}"
    ),
    properties={
        "repository": "repository",
        "commits": "commits_count",
        "prs": "pr_titles",
        "added": "total_lines_added",
        "deleted": "total_lines_deleted",
        "files": "files_changed",
        "messages": "commit_messages",
    },
    fallback_summary="GitHub Activity",
)

EVENT_FAMILIES: dict[str, TransformerConfig] = {
    "oura": SLEEP_EVENTS,
    "strava": WORKOUT_EVENTS,
    "withings": BODY_WEIGHT_EVENTS,
    "steam": GAME_EVENTS,
    "github": PR_EVENTS,
}


def family_for(source_key: str) -> TransformerConfig:
    """Return the event family for a source.

    Raises:
        ConfigurationError: If the source has no calendar events.
    """
    try:
        return EVENT_FAMILIES[source_key]
    except KeyError:
        raise ConfigurationError(f"No calendar event family for source: {source_key}") from None
