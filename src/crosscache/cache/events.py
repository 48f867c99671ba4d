"""Mutation events exchanged between crosscache peers.

Wire format (orjson-encoded object):

    {
        "version": 1,
        "type": "update",
        "payload": {"subjectId": "rev1", "ownerId": "42"},
        "timestamp": 1767225600000,
        "originId": "a1b2c3d4"
    }

Field names on the wire are camelCase; the Python attributes are snake_case.
Events carry identifiers only, never cached values: peers react by
invalidating, and refetch on their next miss.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import orjson

from crosscache.errors import MalformedEventError

ENVELOPE_VERSION = 1


class MutationType(str, Enum):
    """Kind of write applied to the backing store."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class MutationPayload:
    """Identifiers needed to invalidate after a mutation."""

    subject_id: str
    owner_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["subjectId"] = self.subject_id
        if self.owner_id is not None:
            data["ownerId"] = self.owner_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MutationPayload:
        subject_id = data.get("subjectId")
        if not isinstance(subject_id, str) or not subject_id:
            raise MalformedEventError("payload.subjectId must be a non-empty string")

        owner_id = data.get("ownerId")
        if owner_id is not None and not isinstance(owner_id, str):
            owner_id = str(owner_id)

        extra = {k: v for k, v in data.items() if k not in ("subjectId", "ownerId")}
        return cls(subject_id=subject_id, owner_id=owner_id, extra=extra)


@dataclass(frozen=True, slots=True)
class MutationEvent:
    """A create/update/delete notice for peers of the same application."""

    type: MutationType
    payload: MutationPayload
    origin_id: str
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    version: int = ENVELOPE_VERSION

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return orjson.dumps(
            {
                "version": self.version,
                "type": self.type.value,
                "payload": self.payload.to_dict(),
                "timestamp": self.timestamp,
                "originId": self.origin_id,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes | str) -> MutationEvent:
        """Deserialize from JSON bytes.

        Raises MalformedEventError for anything that is not a supported
        envelope, including envelopes from newer peers.
        """
        try:
            parsed = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise MalformedEventError(f"Invalid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise MalformedEventError("Envelope must be a JSON object")

        version = parsed.get("version", ENVELOPE_VERSION)
        if isinstance(version, bool) or version != ENVELOPE_VERSION:
            raise MalformedEventError(f"Unsupported envelope version: {version!r}")

        try:
            mutation_type = MutationType(parsed.get("type"))
        except ValueError as e:
            raise MalformedEventError(f"Unknown mutation type: {parsed.get('type')!r}") from e

        payload = parsed.get("payload")
        if not isinstance(payload, dict):
            raise MalformedEventError("payload must be a JSON object")

        origin_id = parsed.get("originId")
        if not isinstance(origin_id, str):
            raise MalformedEventError("originId must be a string")

        timestamp = parsed.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            raise MalformedEventError("timestamp must be an integer")

        return cls(
            type=mutation_type,
            payload=MutationPayload.from_dict(payload),
            origin_id=origin_id,
            timestamp=timestamp,
            version=version,
        )
