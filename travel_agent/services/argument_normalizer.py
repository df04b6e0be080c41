"""Per-tool fixups for argument shapes the model gets wrong.

The calendar provider's schema is not published as a contract; these rules
follow the provider errors observed for its create/list/update event tools and
are expected to change with provider versions.
"""

from typing import Any, Callable, Dict

DEFAULT_CALENDAR_ID = "primary"

# Values models copy verbatim from documentation examples
PLACEHOLDER_CALENDAR_IDS = {
    "calendarid",
    "calendar_id",
    "your_calendar_id",
    "your-calendar-id",
    "<calendarid>",
    "<calendar_id>",
    "calendar-id",
    "default",
    "my calendar",
    "me",
}

# Sub-objects models wrap around the fields the provider expects at top level
WRAPPER_KEYS = ("event", "eventDetails", "event_details", "details", "params", "arguments")

TIMESTAMP_FIELDS = ("start", "end", "timeMin", "timeMax")


def _is_placeholder(value: Any) -> bool:
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    return not value.strip() or value.strip().lower() in PLACEHOLDER_CALENDAR_IDS


def _flatten_wrappers(args: Dict[str, Any]) -> Dict[str, Any]:
    """Collapse wrapping sub-objects; nested values win over top-level duplicates."""
    flat = dict(args)
    for key in WRAPPER_KEYS:
        nested = flat.get(key)
        if isinstance(nested, dict):
            del flat[key]
            flat.update(nested)
    return flat


def _coerce_timestamp(value: Any):
    """
    Reduce {dateTime|value|date, allDay?, timeZone?} objects to a plain string.

    Returns:
        Tuple of (coerced value, time zone found in the object or None)
    """
    if not isinstance(value, dict):
        return value, None

    time_zone = value.get("timeZone")
    for key in ("dateTime", "value", "date"):
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip(), time_zone
    return value, None


def _normalize_calendar_args(args: Dict[str, Any]) -> Dict[str, Any]:
    normalized = _flatten_wrappers(args)

    if _is_placeholder(normalized.get("calendarId")):
        normalized["calendarId"] = DEFAULT_CALENDAR_ID

    for field in TIMESTAMP_FIELDS:
        if field in normalized:
            coerced, time_zone = _coerce_timestamp(normalized[field])
            normalized[field] = coerced
            if time_zone and not normalized.get("timeZone"):
                normalized["timeZone"] = time_zone

    return normalized


NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "create-event": _normalize_calendar_args,
    "update-event": _normalize_calendar_args,
    "list-events": _normalize_calendar_args,
    "search-events": _normalize_calendar_args,
    "get-event": _normalize_calendar_args,
    "delete-event": _normalize_calendar_args,
}


def normalize_arguments(tool_name: str, raw_args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reshape model-supplied arguments into what the tool's executor expects.

    Never raises: unrecognized shapes pass through unchanged and any error is
    left for execution to report.

    Args:
        tool_name: Name of the tool being called
        raw_args: Arguments as emitted by the model

    Returns:
        Arguments for the executor (a new dict; the input is not mutated)
    """
    if not isinstance(raw_args, dict):
        return raw_args

    normalizer = NORMALIZERS.get(tool_name)
    if normalizer is None:
        return dict(raw_args)
    return normalizer(raw_args)
