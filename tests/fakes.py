"""Shared stubs for gateway and platform collaborators."""
import json
from typing import Any, List, Optional

import httpx

from application.dtos.platform import Cart, PlatformCustomer
from core.settings import CulqiSettings
from domain.gateway_log import GatewayLog


LIVE_KEY = "sk_live_0123456789"
TEST_KEY = "sk_test_0123456789"


class RecordingSink:
    """GatewayLogSink stub keeping every persisted record in memory."""

    def __init__(self) -> None:
        self.logs: List[GatewayLog] = []

    async def persist(self, log: GatewayLog) -> None:
        self.logs.append(log)


class FailingSink:
    async def persist(self, log: GatewayLog) -> None:
        raise RuntimeError("database is down")


class Recorder:
    """MockTransport handler that records requests and replays canned responses.

    Responses are consumed in order; the last one repeats.
    """

    def __init__(self, *responses: Any) -> None:
        self.requests: List[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def json_response(status_code: int, body: Any, headers: Optional[dict] = None) -> httpx.Response:
    return httpx.Response(status_code, json=body, headers=headers or {})


def make_settings(**overrides: Any) -> CulqiSettings:
    values = {"secret_key": LIVE_KEY, "log_requests": True}
    values.update(overrides)
    return CulqiSettings(**values)


class StubCustomerStore:
    def __init__(self, fail: bool = False) -> None:
        self.updates: List[tuple] = []
        self._fail = fail

    async def update(self, customer_id: str, *, metadata: dict) -> PlatformCustomer:
        self.updates.append((customer_id, metadata))
        if self._fail:
            raise RuntimeError("customer store unavailable")
        return PlatformCustomer(id=customer_id, metadata=metadata)


class StubCartStore:
    def __init__(self, cart: Cart) -> None:
        self.cart = cart
        self.retrieved: List[str] = []

    async def retrieve(self, cart_id: str) -> Cart:
        self.retrieved.append(cart_id)
        return self.cart
