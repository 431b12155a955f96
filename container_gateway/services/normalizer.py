"""
Response Normalization

Reshapes loosely-typed backend payloads into the canonical, null-free
response schema. Every function here only widens and defaults: unrecognized
fields are copied through untouched and nothing raises.
"""

import json
import math
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from ..constants import (
    LABELS,
    LAST_UPDATED,
    MOUNT_DEFAULTS,
    MOUNTS,
    NETWORKS,
    PORTS,
    SERVER_VERSION,
    SERVER_VERSION_SOURCE,
    SYSTEM_INFO_FIELDS,
)
from ..core.error_response import utc_timestamp

logger = structlog.get_logger()

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def to_record(payload: Any) -> dict[str, Any] | None:
    """Canonicalise a backend payload into a plain keyed record.

    Generic mappings are copied. Anything else (pydantic models, dataclasses,
    typed objects) is serialized to JSON and parsed back, so downstream code
    only ever sees one shape. Returns None when the payload does not turn into
    a keyed record.
    """
    if isinstance(payload, Mapping):
        return dict(payload)
    if payload is None:
        return None

    try:
        reparsed = json.loads(_ANY_ADAPTER.dump_json(payload))
    except (PydanticSerializationError, TypeError, ValueError) as e:
        logger.warning(
            "Failed to canonicalise backend record",
            payload_type=type(payload).__name__,
            error=str(e),
        )
        return None

    return reparsed if isinstance(reparsed, dict) else None


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def normalize_mount(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a mount entry and fill source, destination, type and read_only."""
    normalized = dict(entry)
    for key, default in MOUNT_DEFAULTS.items():
        normalized.setdefault(key, default)
    return normalized


def normalize_container(record: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize one container record into the canonical shape.

    - mounts: missing/null becomes [], entries are defaulted and only
      keyed entries are kept
    - ports, networks: missing/null becomes []
    - labels: missing/null becomes {}
    """
    normalized = dict(record)

    mounts = normalized.get(MOUNTS)
    if mounts is None:
        normalized[MOUNTS] = []
    elif _is_sequence(mounts):
        normalized[MOUNTS] = [normalize_mount(mount) for mount in mounts if isinstance(mount, Mapping)]

    for field in (PORTS, NETWORKS):
        if normalized.get(field) is None:
            normalized[field] = []

    if normalized.get(LABELS) is None:
        normalized[LABELS] = {}

    return normalized


def canonical_container(payload: Any) -> dict[str, Any] | None:
    """Canonicalise then normalize a single backend container payload."""
    record = to_record(payload)
    if record is None:
        return None
    return normalize_container(record)


def normalize_containers(payload: Any) -> list[dict[str, Any]]:
    """Normalize a container listing; always returns a list.

    A single keyed record is treated as a one-element listing. Entries that
    cannot be canonicalised are skipped.
    """
    if isinstance(payload, Mapping):
        return [normalize_container(payload)]
    if not _is_sequence(payload):
        return []

    containers = []
    for item in payload:
        container = canonical_container(item)
        if container is None:
            logger.warning("Skipping container record that is not a keyed record")
            continue
        containers.append(container)
    return containers


def normalize_listing(payload: Any) -> list[Any]:
    """Normalize an image or network listing into a JSON array."""
    if payload is None or not _is_sequence(payload):
        return []
    items = []
    for item in payload:
        record = to_record(item)
        items.append(record if record is not None else item)
    return items


def coerce_int(value: Any) -> int:
    """Coerce a backend counter to int, defaulting to 0 when unparsable."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return int(number) if math.isfinite(number) else 0
    return 0


def _zero_summary() -> dict[str, Any]:
    summary: dict[str, Any] = {field: 0 for field in SYSTEM_INFO_FIELDS.values()}
    summary[LAST_UPDATED] = utc_timestamp()
    return summary


def normalize_system_info(payload: Any) -> dict[str, Any]:
    """Normalize Docker system info into the canonical summary.

    Capitalized backend counters are copied under their snake_case names as
    integers, every canonical counter is guaranteed to exist, ServerVersion is
    propagated as server_version and a last_updated timestamp is attached.
    Anything that is not a keyed record yields the all-zero summary.
    """
    if not isinstance(payload, Mapping):
        return _zero_summary()

    info = payload
    normalized = dict(info)
    for source_field, canonical_field in SYSTEM_INFO_FIELDS.items():
        if source_field in info:
            normalized[canonical_field] = coerce_int(info[source_field])
        else:
            normalized[canonical_field] = coerce_int(info.get(canonical_field, 0))

    server_version = info.get(SERVER_VERSION_SOURCE)
    if server_version is not None:
        normalized[SERVER_VERSION] = str(server_version)

    normalized[LAST_UPDATED] = utc_timestamp()
    return normalized
