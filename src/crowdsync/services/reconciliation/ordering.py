"""Deterministic ordering of fetched chain events."""

from typing import Iterable

from crowdsync.infrastructure.chain.events import ChainEvent


def event_sort_key(event: ChainEvent) -> tuple[int, int]:
    """Sort key: block height, then intra-block event index."""
    return (event.block_height, event.event_index)


def order_events(events: Iterable[ChainEvent]) -> list[ChainEvent]:
    """Return a new list of ``events`` in happened-before order.

    The sort is stable, so events tied on both keys keep their arrival order.
    The input is never modified.
    """
    return sorted(events, key=event_sort_key)
