"""
Normalization of Gripp records.

Records reach us in two shapes: straight from the Gripp API, with nested
objects, or back from the SQLite cache, where nested objects were stored as
JSON strings. Normalization turns either into the canonical ``Project`` shape.

Each field is parsed independently into a ``FieldOutcome``. A malformed field
is logged and replaced with its default; it never raises and never affects
the other fields of the record.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable

from core.logging_config import get_logger
from models.gripp import GrippDate, NamedRef, Project

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "Europe/Amsterdam"

# Fields stored as JSON text in the cache
NESTED_PROJECT_FIELDS = (
    "company",
    "phase",
    "tags",
    "deadline",
    "startdate",
    "deliverydate",
    "enddate",
    "updatedon",
    "employees_starred",
    "projectlines",
)
DATE_FIELDS = ("deadline", "startdate", "deliverydate", "enddate", "updatedon")


@dataclass(frozen=True)
class FieldOutcome:
    """Result of parsing one field: the value to use, and whether it was valid."""

    value: Any
    ok: bool = True
    error: str | None = None


def _fresh(default: Any) -> Any:
    # Never hand out a shared mutable default
    return list(default) if isinstance(default, list) else default


def named_ref(name: str) -> NamedRef:
    """Reference built from a bare name such as a literal phase name."""
    return {"id": None, "searchname": name}


def gripp_date(value: str) -> GrippDate:
    """Gripp date object built from a bare date string."""
    return {"date": value, "timezone_type": 3, "timezone": DEFAULT_TIMEZONE}


def looks_like_json(text: str) -> bool:
    return text[:1] in ("{", "[")


def parse_json_field(
    value: Any,
    default: Any,
    expected: type | tuple[type, ...],
    plain: Callable[[str], Any] | None = None,
) -> FieldOutcome:
    """
    Parse a field that may be a typed value, a JSON string or missing.

    Args:
        value: Raw field value.
        default: Value used when the field is missing or invalid.
        expected: Type(s) the parsed value must have.
        plain: Converter for strings that do not look like JSON. When given,
            such strings are converted instead of being reported as
            malformed JSON.
    """
    if value is None:
        return FieldOutcome(_fresh(default))

    if isinstance(value, str):
        text = value.strip()
        if not text or text == "null":
            return FieldOutcome(_fresh(default))
        if plain is not None and not looks_like_json(text):
            return FieldOutcome(plain(text))
        try:
            value = json.loads(text)
        except ValueError as e:
            return FieldOutcome(_fresh(default), ok=False, error=f"invalid JSON: {e}")
        if value is None:
            return FieldOutcome(_fresh(default))

    if not isinstance(value, expected):
        names = (
            "/".join(t.__name__ for t in expected)
            if isinstance(expected, tuple)
            else expected.__name__
        )
        return FieldOutcome(
            _fresh(default),
            ok=False,
            error=f"expected {names}, got {type(value).__name__}",
        )

    return FieldOutcome(value)


def _tag_from_item(item: Any) -> NamedRef | None:
    if isinstance(item, str):
        return named_ref(item) if item.strip() else None
    if isinstance(item, dict):
        name = item.get("searchname") or item.get("name")
        if not name:
            return None
        return {"id": item.get("id"), "searchname": name}
    return None


def normalize_tags(value: Any) -> FieldOutcome:
    """
    Normalize tags to a list of ``{"id", "searchname"}`` entries.

    Gripp and the cache hand tags over as a list, a JSON string, a single tag
    object or a bare tag name.
    """
    outcome = parse_json_field(value, [], (list, dict), plain=lambda s: [named_ref(s)])
    if not outcome.ok:
        return outcome

    items = outcome.value if isinstance(outcome.value, list) else [outcome.value]
    tags = []
    skipped = 0
    for item in items:
        tag = _tag_from_item(item)
        if tag is None:
            skipped += 1
        else:
            tags.append(tag)

    if skipped:
        return FieldOutcome(tags, ok=False, error=f"skipped {skipped} unusable tag(s)")
    return FieldOutcome(tags)


def normalize_date(value: Any) -> FieldOutcome:
    outcome = parse_json_field(value, None, dict, plain=gripp_date)
    if outcome.value is not None and "date" not in outcome.value:
        return FieldOutcome(None, ok=False, error="date object without 'date'")
    return outcome


def normalize_project_line(line: dict) -> dict:
    normalized = dict(line)
    product = parse_json_field(line.get("product"), None, dict, plain=named_ref)
    normalized["product"] = product.value
    return normalized


def normalize_project_lines(value: Any) -> FieldOutcome:
    outcome = parse_json_field(value, [], list)
    if not outcome.ok:
        return outcome
    lines = [normalize_project_line(line) for line in outcome.value if isinstance(line, dict)]
    dropped = len(outcome.value) - len(lines)
    if dropped:
        return FieldOutcome(lines, ok=False, error=f"dropped {dropped} non-object line(s)")
    return FieldOutcome(lines)


def normalize_project(raw: dict) -> Project:
    """
    Return a canonical copy of a project record.

    Never raises for malformed field data; each bad field is logged and
    defaulted on its own.
    """
    project = dict(raw)
    outcomes = {
        "projectlines": normalize_project_lines(raw.get("projectlines")),
        "tags": normalize_tags(raw.get("tags")),
        "company": parse_json_field(raw.get("company"), None, dict, plain=named_ref),
        "phase": parse_json_field(raw.get("phase"), None, dict, plain=named_ref),
        "employees_starred": parse_json_field(raw.get("employees_starred"), [], list),
    }
    for field_name in DATE_FIELDS:
        outcomes[field_name] = normalize_date(raw.get(field_name))

    for field_name, outcome in outcomes.items():
        if not outcome.ok:
            logger.warning(
                "project_field_invalid",
                project_id=raw.get("id"),
                field=field_name,
                error=outcome.error,
            )
        project[field_name] = outcome.value

    return project


def serialize_project(project: dict) -> dict:
    """Encode nested fields as JSON text for storage."""
    serialized = dict(project)
    for field_name in NESTED_PROJECT_FIELDS:
        value = project.get(field_name)
        if value is not None and not isinstance(value, str):
            serialized[field_name] = json.dumps(value)
    return serialized
