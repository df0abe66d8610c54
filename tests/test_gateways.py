"""执行网关：下单系统 HTTP 客户端与模拟网关。"""

import json
from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from sysplan.core.models import Plan
from sysplan.data.client.order_gateway import OrderGatewayClient, idempotency_key
from sysplan.data.client.simulated_gateway import SimulatedGateway


def _plan(**overrides) -> Plan:
    fields = {
        "id": "SIP-20261019-AB12C",
        "plan_type": "SIP",
        "client_id": 1,
        "scheme_id": 101,
        "amount": Decimal("5000.00"),
        "start_date": date(2026, 10, 19),
        "frequency": "Monthly",
        "installments": 12,
        "created_at": datetime(2026, 10, 18, 9, 0),
        "executed_installments": 2,
        "next_execution_date": date(2026, 12, 19),
    }
    fields.update(overrides)
    return Plan(**fields)


def _gateway(handler) -> OrderGatewayClient:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OrderGatewayClient("http://orders.local/", client=client)


class TestOrderGatewayClient:
    def test_success(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"success": True, "orderId": "ORD-9"})

        result = _gateway(handler).execute(_plan())

        assert result.success
        assert result.reference_id == "ORD-9"
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == "http://orders.local/orders"
        assert request.headers["Idempotency-Key"] == "SIP-20261019-AB12C:2026-12-19:3"
        body = json.loads(request.content)
        assert body["planId"] == "SIP-20261019-AB12C"
        assert body["amount"] == "5000.00"
        assert body["installment"] == 3
        assert body["executionDate"] == "2026-12-19"
        assert "sourceSchemeId" not in body

    def test_stp_payload_carries_both_schemes(self) -> None:
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "referenceId": "REF-1"})

        plan = _plan(plan_type="STP", scheme_id=202, source_scheme_id=101, target_scheme_id=202)
        result = _gateway(handler).execute(plan)

        assert result.reference_id == "REF-1"
        assert (captured[0]["sourceSchemeId"], captured[0]["targetSchemeId"]) == (101, 202)

    def test_business_failure(self) -> None:
        result = _gateway(
            lambda request: httpx.Response(200, json={"success": False, "reason": "Insufficient funds"})
        ).execute(_plan())
        assert not result.success
        assert result.reason == "Insufficient funds"

    def test_http_error_status(self) -> None:
        assert _gateway(lambda request: httpx.Response(503)).execute(_plan()).reason == "HTTP 503"
        result = _gateway(
            lambda request: httpx.Response(422, json={"message": "Scheme closed"})
        ).execute(_plan())
        assert result.reason == "Scheme closed"

    def test_missing_order_id(self) -> None:
        result = _gateway(lambda request: httpx.Response(200, json={"success": True})).execute(_plan())
        assert result.reason == "Gateway response missing orderId"

    def test_timeout_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        result = _gateway(handler).execute(_plan())
        assert not result.success
        assert result.reason == "Gateway timeout"

    def test_transport_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = _gateway(handler).execute(_plan())
        assert result.reason == "Gateway error: connection refused"

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ValueError):
            OrderGatewayClient("http://orders.local", timeout=0)

    def test_idempotency_key_stable_across_retries(self) -> None:
        """同一期的重试使用同一个幂等键。"""
        plan = _plan()
        retried = _plan(retry_count=2, failure_reason="Insufficient funds")
        assert idempotency_key(plan) == idempotency_key(retried)
        assert idempotency_key(_plan(executed_installments=3)) != idempotency_key(plan)


class TestSimulatedGateway:
    def test_always_success(self) -> None:
        result = SimulatedGateway(1.0, seed=1).execute(_plan())
        assert result.success
        assert result.reference_id.startswith("ORD-")

    def test_always_failure(self) -> None:
        result = SimulatedGateway(0.0, seed=1).execute(_plan())
        assert not result.success
        assert result.reason == "Insufficient funds"

    def test_seed_is_reproducible(self) -> None:
        first = SimulatedGateway(0.5, seed=42)
        second = SimulatedGateway(0.5, seed=42)
        outcomes = [first.execute(_plan()).success for _ in range(20)]
        assert outcomes == [second.execute(_plan()).success for _ in range(20)]

    def test_invalid_rate(self) -> None:
        with pytest.raises(ValueError):
            SimulatedGateway(1.5)
