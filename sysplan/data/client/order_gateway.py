from __future__ import annotations

import logging

import httpx

from sysplan.core.models import ExecutionResult, Plan

logger = logging.getLogger(__name__)


def idempotency_key(plan: Plan) -> str:
    """
    生成单期执行的幂等键：plan_id + 当期执行日 + 期号。

    同一期的当日重试使用同一个键，下单系统可据此去重。
    """
    due = plan.next_execution_date.isoformat() if plan.next_execution_date else "-"
    return f"{plan.id}:{due}:{plan.executed_installments + 1}"


class OrderGatewayClient:
    """
    下单系统 HTTP 客户端（执行网关）。

    职责：
    - 将单期计划转换为下单请求（POST {base_url}/orders）；
    - 将响应规整为 ExecutionResult。

    设计原则：
    - 网关失败是正常结果：HTTP 异常、超时、非 2xx 均返回 failed，不向上抛出；
    - 不在客户端内部重试，当日重试由调度器按截止窗口统一处理；
    - 每期携带 Idempotency-Key，重复请求由下单系统去重。
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """
        初始化下单网关客户端。

        Args:
            base_url: 下单系统地址（不含 /orders）。
            timeout: 单次请求超时时间（秒）。
            client: 可注入的 httpx.Client（测试时可配合 MockTransport）。
        """
        if timeout <= 0:
            raise ValueError("timeout 必须 > 0")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def execute(self, plan: Plan) -> ExecutionResult:
        """
        对计划当前一期发起下单。

        Returns:
            成功返回带订单号的结果；任何失败返回带原因的结果。
        """
        payload = _build_payload(plan)
        headers = {"Idempotency-Key": idempotency_key(plan)}
        try:
            resp = self._post("/orders", json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.warning(f"[Gateway:Order] 请求超时：plan={plan.id}")
            return ExecutionResult.failed("Gateway timeout")
        except httpx.HTTPError as err:
            logger.warning(f"[Gateway:Order] 请求失败：plan={plan.id} err={err}")
            return ExecutionResult.failed(f"Gateway error: {err}")

        return _parse_response(plan, resp)

    def _post(self, path: str, *, json: dict, headers: dict[str, str]) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return self._client.post(url, json=json, headers=headers, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(url, json=json, headers=headers)


def _build_payload(plan: Plan) -> dict:
    """构造下单请求体。"""
    payload: dict = {
        "planId": plan.id,
        "planType": plan.plan_type,
        "clientId": plan.client_id,
        "schemeId": plan.scheme_id,
        "amount": str(plan.amount),
        "installment": plan.executed_installments + 1,
        "executionDate": plan.next_execution_date.isoformat() if plan.next_execution_date else None,
    }
    if plan.plan_type == "STP":
        payload["sourceSchemeId"] = plan.source_scheme_id
        payload["targetSchemeId"] = plan.target_scheme_id
    return payload


def _parse_response(plan: Plan, resp: httpx.Response) -> ExecutionResult:
    """
    解析下单响应。

    约定响应体：
    - 成功：{"success": true, "orderId": "ORD-..."}
    - 失败：{"success": false, "reason": "Insufficient funds"}
    非 2xx 时优先使用响应体中的 reason，否则使用 HTTP 状态码。
    """
    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    reason = body.get("reason") or body.get("message")
    if resp.status_code >= 400:
        logger.warning(f"[Gateway:Order] HTTP 状态异常：plan={plan.id} status={resp.status_code}")
        return ExecutionResult.failed(str(reason or f"HTTP {resp.status_code}"))

    if body.get("success") is True:
        order_id = body.get("orderId") or body.get("referenceId")
        if not order_id:
            return ExecutionResult.failed("Gateway response missing orderId")
        return ExecutionResult.ok(str(order_id))

    return ExecutionResult.failed(str(reason or "Execution failed"))
