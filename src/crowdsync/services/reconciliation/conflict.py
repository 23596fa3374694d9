"""Precedence policy between chain data and stored data."""

from typing import TypeVar

T = TypeVar("T")


class ChainWinsResolver:
    """The chain is authoritative.

    The reconciliation engine is the only writer of chain-sourced fields, so the
    only disagreement it can meet is stale stored data. A second writer would
    need its own policy here instead of an implicit precedence.
    """

    def resolve(self, stored: T | None, chain: T) -> T:
        """Return the value to persist when ``stored`` and ``chain`` differ."""
        return chain
