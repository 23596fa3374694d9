"""Chain event model and JSON-Cadence payload decoding."""

import base64
import itertools
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# UFix64 carries 8 decimal places; amounts are stored as integer base units.
BASE_UNITS_PER_TOKEN = 100_000_000

_INTEGER_TYPES = {
    "Int", "Int8", "Int16", "Int32", "Int64", "Int128", "Int256",
    "UInt", "UInt8", "UInt16", "UInt32", "UInt64", "UInt128", "UInt256",
    "Word8", "Word16", "Word32", "Word64",
}
_FIXED_POINT_TYPES = {"UFix64", "Fix64"}
_STRING_TYPES = {"String", "Address", "Character", "Path", "Type"}
_COMPOSITE_TYPES = {"Struct", "Resource", "Event", "Contract", "Enum"}


class EventKind(str, Enum):
    """Crowdfunding contract events, one stream each."""

    PROJECT_CREATED = "ProjectCreated"
    CONTRIBUTION_MADE = "ContributionMade"
    FUNDS_WITHDRAWN = "FundsWithdrawn"
    REFUND_PROCESSED = "RefundProcessed"


class ChainTxStatus(str, Enum):
    """Transaction status as reported by the chain."""

    PENDING = "pending"
    SUCCESS = "success"
    ABORTED = "aborted"


@dataclass
class ChainEvent:
    """A single contract event as fetched from the chain.

    ``kind`` is kept as a plain string so that events of kinds this service does
    not know about can still be carried, logged and ignored.
    """

    kind: str
    transaction_id: str
    block_height: int
    event_index: int = 0
    transaction_index: int = 0
    block_timestamp: datetime | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransactionStatusResult:
    """Status of a submitted transaction."""

    tx_id: str
    status: ChainTxStatus
    block_height: int | None = None
    reason: str | None = None


def decode_cadence(value: dict[str, Any]) -> Any:
    """Decode a JSON-Cadence value into plain Python.

    Args:
        value: JSON-Cadence object with ``type`` and ``value`` keys

    Returns:
        int, Decimal, str, bool, None, list or dict
    """
    cadence_type = value.get("type")
    inner = value.get("value")

    if cadence_type in _INTEGER_TYPES:
        return int(inner)
    if cadence_type in _FIXED_POINT_TYPES:
        return Decimal(inner)
    if cadence_type in _STRING_TYPES:
        return inner if isinstance(inner, str) else json.dumps(inner)
    if cadence_type == "Bool":
        return bool(inner)
    if cadence_type in ("Optional", "Void"):
        return decode_cadence(inner) if inner is not None else None
    if cadence_type == "Array":
        return [decode_cadence(item) for item in inner]
    if cadence_type == "Dictionary":
        return {
            decode_cadence(entry["key"]): decode_cadence(entry["value"])
            for entry in inner
        }
    if cadence_type in _COMPOSITE_TYPES:
        return {f["name"]: decode_cadence(f["value"]) for f in inner.get("fields", [])}

    raise ValueError(f"Unsupported JSON-Cadence type: {cadence_type}")


def decode_event_payload(payload: str) -> dict[str, Any]:
    """Decode a base64 JSON-Cadence event payload into its field mapping."""
    document = json.loads(base64.b64decode(payload))
    decoded = decode_cadence(document)
    if not isinstance(decoded, dict):
        raise ValueError("Event payload is not a composite value")
    return decoded


def event_kind_from_type(event_type: str) -> str:
    """Extract the event name from a qualified type like ``A.0x1.Contract.Name``."""
    return event_type.rsplit(".", 1)[-1]


def to_base_units(amount: Decimal | int | float | str) -> int:
    """Convert a token amount into integer base units, truncating extra precision."""
    return int(Decimal(str(amount)) * BASE_UNITS_PER_TOKEN)


def from_unix_seconds(value: Decimal | int | float | str) -> datetime:
    """Convert a Unix timestamp (seconds, possibly fractional) to an aware datetime."""
    return datetime.fromtimestamp(float(Decimal(str(value))), tz=timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as returned by the Access API."""
    if not value:
        return None
    try:
        # Access nodes return nanosecond precision; keep microseconds.
        text = value.replace("Z", "+00:00")
        if "." in text:
            head, rest = text.split(".", 1)
            digits = "".join(itertools.takewhile(str.isdigit, rest))
            suffix = rest[len(digits):]
            text = f"{head}.{digits[:6]}{suffix}"
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable block timestamp: {value}")
        return None
