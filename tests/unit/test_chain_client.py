"""Tests for the Flow Access REST client."""

import base64
import json

import httpx
import pytest

from crowdsync.infrastructure.chain.client import ChainQueryError, FlowAccessClient
from crowdsync.infrastructure.chain.events import ChainTxStatus, EventKind

PRIMARY = "https://primary.example"
BACKUP = "https://backup.example"


def encode_payload(project_id: int) -> str:
    document = {
        "type": "Event",
        "value": {
            "id": "A.0000000000000001.Crowdfunding.ProjectCreated",
            "fields": [
                {"name": "projectId", "value": {"type": "UInt64", "value": str(project_id)}},
            ],
        },
    }
    return base64.b64encode(json.dumps(document).encode()).decode()


def sealed_block(height: int) -> list[dict]:
    return [{"header": {"id": f"block-{height}", "height": str(height)}}]


def make_client(handler, urls=None, **kwargs) -> FlowAccessClient:
    options = {
        "access_urls": urls or [PRIMARY],
        "contract_address": "0x0000000000000001",
        "contract_name": "Crowdfunding",
        "max_retries": 1,
        "retry_delay": 0,
        "max_height_range": 250,
        "transport": httpx.MockTransport(handler),
    }
    options.update(kwargs)
    return FlowAccessClient(**options)


class TestEventType:
    """Tests for qualified event type construction."""

    def test_event_type(self):
        """Test the qualified type strips the 0x prefix."""
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert (
            client.event_type(EventKind.PROJECT_CREATED)
            == "A.0000000000000001.Crowdfunding.ProjectCreated"
        )


class TestFetchEvents:
    """Tests for fetch_events."""

    @pytest.mark.asyncio
    async def test_fetches_above_cursor(self):
        """Test events are requested from since+1 to the sealed height."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/v1/blocks":
                return httpx.Response(200, json=sealed_block(120))
            return httpx.Response(200, json=[
                {
                    "block_id": "b1",
                    "block_height": "110",
                    "block_timestamp": "2024-01-01T00:00:00.000000000Z",
                    "events": [
                        {
                            "type": "A.0000000000000001.Crowdfunding.ProjectCreated",
                            "transaction_id": "tx-1",
                            "transaction_index": "0",
                            "event_index": "2",
                            "payload": encode_payload(9),
                        }
                    ],
                }
            ])

        client = make_client(handler)
        events = await client.fetch_events(EventKind.PROJECT_CREATED, 100)
        await client.close()

        assert len(events) == 1
        event = events[0]
        assert event.kind == "ProjectCreated"
        assert event.transaction_id == "tx-1"
        assert event.block_height == 110
        assert event.event_index == 2
        assert event.data == {"projectId": 9}

        events_request = requests[1]
        assert events_request.url.params["start_height"] == "101"
        assert events_request.url.params["end_height"] == "120"

    @pytest.mark.asyncio
    async def test_splits_into_height_windows(self):
        """Test long ranges are split into windows of max_height_range blocks."""
        windows = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/blocks":
                return httpx.Response(200, json=sealed_block(25))
            windows.append(
                (int(request.url.params["start_height"]), int(request.url.params["end_height"]))
            )
            return httpx.Response(200, json=[])

        client = make_client(handler, max_height_range=10)
        events = await client.fetch_events(EventKind.CONTRIBUTION_MADE, 0)
        await client.close()

        assert events == []
        assert windows == [(1, 10), (11, 20), (21, 25)]

    @pytest.mark.asyncio
    async def test_nothing_new(self):
        """Test no events query is made when the cursor is at the tip."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json=sealed_block(50))

        client = make_client(handler)
        assert await client.fetch_events(EventKind.REFUND_PROCESSED, 50) == []
        await client.close()
        assert calls == ["/v1/blocks"]


class TestFailover:
    """Tests for endpoint failover."""

    @pytest.mark.asyncio
    async def test_fails_over_to_backup(self):
        """Test a failing primary falls through to the backup node."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "primary.example":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=sealed_block(77))

        client = make_client(handler, urls=[PRIMARY, BACKUP])
        assert await client.get_sealed_height() == 77
        await client.close()

    @pytest.mark.asyncio
    async def test_all_nodes_fail(self):
        """Test ChainQueryError when every node fails."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "boom"})

        client = make_client(handler, urls=[PRIMARY, BACKUP], max_retries=2)
        with pytest.raises(ChainQueryError):
            await client.get_sealed_height()
        await client.close()

    @pytest.mark.asyncio
    async def test_health_check_false_on_failure(self):
        """Test health check reports failure instead of raising."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = make_client(handler)
        assert await client.health_check() is False
        await client.close()


class TestTransactionStatus:
    """Tests for get_transaction_status."""

    @pytest.mark.asyncio
    async def test_unknown_transaction_is_pending(self):
        """Test a 404 maps to PENDING."""
        client = make_client(lambda request: httpx.Response(404, json={}))
        result = await client.get_transaction_status("tx-x")
        await client.close()
        assert result.status == ChainTxStatus.PENDING

    @pytest.mark.asyncio
    async def test_sealed_success_resolves_height(self):
        """Test Sealed + Success maps to SUCCESS with the block height."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/v1/transaction_results/"):
                return httpx.Response(200, json={
                    "block_id": "abc",
                    "status": "Sealed",
                    "execution": "Success",
                    "error_message": "",
                })
            assert request.url.path == "/v1/blocks/abc"
            return httpx.Response(200, json=sealed_block(500))

        client = make_client(handler)
        result = await client.get_transaction_status("tx-ok")
        await client.close()

        assert result.status == ChainTxStatus.SUCCESS
        assert result.block_height == 500

    @pytest.mark.asyncio
    async def test_execution_failure_is_aborted(self):
        """Test execution failure maps to ABORTED with the error message."""
        client = make_client(lambda request: httpx.Response(200, json={
            "block_id": "abc",
            "status": "Sealed",
            "execution": "Failure",
            "error_message": "pre-condition failed",
        }))
        result = await client.get_transaction_status("tx-bad")
        await client.close()

        assert result.status == ChainTxStatus.ABORTED
        assert result.reason == "pre-condition failed"

    @pytest.mark.asyncio
    async def test_expired_is_aborted(self):
        """Test an expired transaction maps to ABORTED."""
        client = make_client(lambda request: httpx.Response(200, json={
            "status": "Expired",
            "execution": "Pending",
        }))
        result = await client.get_transaction_status("tx-old")
        await client.close()

        assert result.status == ChainTxStatus.ABORTED
        assert result.reason == "Transaction expired"

    @pytest.mark.asyncio
    async def test_executed_not_sealed_is_pending(self):
        """Test a transaction not yet sealed stays PENDING."""
        client = make_client(lambda request: httpx.Response(200, json={
            "status": "Executed",
            "execution": "Success",
        }))
        result = await client.get_transaction_status("tx-wait")
        await client.close()
        assert result.status == ChainTxStatus.PENDING
