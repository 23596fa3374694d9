"""Chain query clients with multi-endpoint failover support."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from crowdsync.core.config import Settings, get_settings
from crowdsync.infrastructure.chain.events import (
    ChainEvent,
    ChainTxStatus,
    EventKind,
    TransactionStatusResult,
    decode_event_payload,
    event_kind_from_type,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class ChainQueryError(Exception):
    """Raised when the chain cannot be queried on any configured endpoint."""


class ChainQueryClient(ABC):
    """Abstract base class for chain query clients."""

    @abstractmethod
    async def fetch_events(
        self, kind: EventKind | str, since_height: int
    ) -> list[ChainEvent]:
        """Fetch events of one kind with block height above ``since_height``."""
        ...

    @abstractmethod
    async def get_transaction_status(self, tx_id: str) -> TransactionStatusResult:
        """Get the current status of a transaction."""
        ...

    async def close(self) -> None:
        """Release client resources."""


class FlowAccessClient(ChainQueryClient):
    """Flow Access REST API client with endpoint failover."""

    def __init__(
        self,
        access_urls: list[str] | None = None,
        contract_address: str | None = None,
        contract_name: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_height_range: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: Settings | None = None,
    ):
        """Initialize Flow client.

        Args:
            access_urls: Access REST endpoints (primary + backups).
                     If None, uses config based on flow_network setting.
            contract_address: Account holding the crowdfunding contract
            contract_name: Contract name used in qualified event types
            max_retries: Maximum retry attempts per endpoint
            retry_delay: Base delay between retries in seconds
            max_height_range: Largest block span requested per events query
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
            settings: Settings override
        """
        settings = settings or get_settings()
        self.access_urls = [
            url.rstrip("/") for url in (access_urls or settings.active_access_urls)
        ]
        self.contract_address = (
            contract_address or settings.crowdfunding_contract_address
        ).removeprefix("0x")
        self.contract_name = contract_name or settings.crowdfunding_contract_name
        self.max_retries = max_retries if max_retries is not None else settings.chain_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.chain_retry_delay
        self.max_height_range = max_height_range or settings.chain_max_height_range
        self._current_url_index = 0
        self._http = httpx.AsyncClient(
            timeout=timeout or settings.chain_request_timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def event_type(self, kind: EventKind | str) -> str:
        """Fully qualified Cadence event type for ``kind``."""
        name = kind.value if isinstance(kind, EventKind) else kind
        return f"A.{self.contract_address}.{self.contract_name}.{name}"

    async def _request_with_failover(
        self, path: str, params: dict[str, Any] | None = None
    ) -> Any | None:
        """GET ``path`` with retry per endpoint and failover across endpoints.

        Args:
            path: API path beginning with ``/v1``
            params: Query parameters

        Returns:
            Decoded JSON body, or None when the resource does not exist (404)

        Raises:
            ChainQueryError: If every endpoint fails
        """
        last_error: Exception | None = None

        for url_offset in range(len(self.access_urls)):
            url_index = (self._current_url_index + url_offset) % len(self.access_urls)
            base_url = self.access_urls[url_index]

            for attempt in range(self.max_retries):
                try:
                    response = await self._http.get(f"{base_url}{path}", params=params)
                    if response.status_code == 404:
                        self._current_url_index = url_index
                        return None
                    response.raise_for_status()
                    self._current_url_index = url_index
                    return response.json()

                except (httpx.HTTPError, ValueError) as e:
                    last_error = e
                    logger.warning(
                        f"Access node {base_url} failed (attempt {attempt + 1}): {e}"
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(self.retry_delay * (attempt + 1))

            logger.warning(f"Switching from access node {base_url} to next backup")

        raise ChainQueryError(f"All access nodes failed. Last error: {last_error}")

    async def get_sealed_height(self) -> int:
        """Get the latest sealed block height."""
        blocks = await self._request_with_failover("/v1/blocks", {"height": "sealed"})
        if not blocks:
            raise ChainQueryError("Access node returned no sealed block")
        return int(blocks[0]["header"]["height"])

    async def get_block_height(self, block_id: str) -> int | None:
        """Get the height of a block by id."""
        blocks = await self._request_with_failover(f"/v1/blocks/{block_id}")
        if not blocks:
            return None
        return int(blocks[0]["header"]["height"])

    async def fetch_events(
        self, kind: EventKind | str, since_height: int
    ) -> list[ChainEvent]:
        """Fetch events of ``kind`` from ``since_height + 1`` up to the sealed tip.

        Args:
            kind: Event kind (stream)
            since_height: Last block height already applied

        Returns:
            Events in the order the access node returned them
        """
        sealed = await self.get_sealed_height()
        start = since_height + 1
        event_type = self.event_type(kind)
        events: list[ChainEvent] = []

        while start <= sealed:
            end = min(start + self.max_height_range - 1, sealed)
            blocks = await self._request_with_failover(
                "/v1/events",
                {"type": event_type, "start_height": start, "end_height": end},
            )
            for block in blocks or []:
                events.extend(self._parse_block_events(block))
            start = end + 1

        if events:
            logger.debug(
                f"Fetched {len(events)} {event_type} events above height {since_height}"
            )
        return events

    def _parse_block_events(self, block: dict[str, Any]) -> list[ChainEvent]:
        """Convert one block-events entry into ChainEvents."""
        height = int(block["block_height"])
        timestamp = parse_timestamp(block.get("block_timestamp"))
        parsed: list[ChainEvent] = []

        for raw in block.get("events", []):
            parsed.append(
                ChainEvent(
                    kind=event_kind_from_type(raw["type"]),
                    transaction_id=raw["transaction_id"],
                    transaction_index=int(raw.get("transaction_index", 0)),
                    event_index=int(raw.get("event_index", 0)),
                    block_height=height,
                    block_timestamp=timestamp,
                    data=decode_event_payload(raw["payload"]),
                )
            )

        return parsed

    async def get_transaction_status(self, tx_id: str) -> TransactionStatusResult:
        """Get transaction status; unknown transactions are reported as pending."""
        result = await self._request_with_failover(f"/v1/transaction_results/{tx_id}")
        if result is None:
            return TransactionStatusResult(tx_id=tx_id, status=ChainTxStatus.PENDING)

        status = result.get("status", "")
        execution = result.get("execution", "")
        error_message = result.get("error_message") or None

        if execution == "Failure" or status == "Expired":
            return TransactionStatusResult(
                tx_id=tx_id,
                status=ChainTxStatus.ABORTED,
                reason=error_message or f"Transaction {status.lower() or 'failed'}",
            )

        if status == "Sealed" and execution == "Success":
            block_height = None
            if result.get("block_id"):
                block_height = await self.get_block_height(result["block_id"])
            return TransactionStatusResult(
                tx_id=tx_id,
                status=ChainTxStatus.SUCCESS,
                block_height=block_height,
            )

        return TransactionStatusResult(tx_id=tx_id, status=ChainTxStatus.PENDING)

    async def health_check(self) -> bool:
        """Check if an access node answers."""
        try:
            return await self.get_sealed_height() > 0
        except ChainQueryError:
            return False

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
