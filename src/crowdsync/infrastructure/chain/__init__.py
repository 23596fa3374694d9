"""Chain access module."""

from crowdsync.infrastructure.chain.client import (
    ChainQueryClient,
    ChainQueryError,
    FlowAccessClient,
)
from crowdsync.infrastructure.chain.events import (
    ChainEvent,
    ChainTxStatus,
    EventKind,
    TransactionStatusResult,
    decode_cadence,
    decode_event_payload,
    to_base_units,
)

__all__ = [
    # Client
    "ChainQueryClient",
    "ChainQueryError",
    "FlowAccessClient",
    # Events
    "ChainEvent",
    "ChainTxStatus",
    "EventKind",
    "TransactionStatusResult",
    "decode_cadence",
    "decode_event_payload",
    "to_base_units",
]
