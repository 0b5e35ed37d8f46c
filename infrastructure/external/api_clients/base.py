"""
Base REST client over httpx.

Bearer auth, optional request/response debug logging and lenient body
parsing (JSON first, raw text otherwise). Non-2xx responses are returned as
plain :class:`APIResponse` objects for the caller to classify; only transport
failures raise, as :class:`TransportError`. There is no retry.
"""
import json
from typing import Dict, Any, List, Optional, Tuple, Union
from dataclasses import dataclass
from enum import Enum
from datetime import datetime

import httpx
from pydantic import BaseModel

from core.logging_config import get_logger

logger = get_logger(__name__)


class HTTPMethod(Enum):
    """HTTP methods used by the gateway clients."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass
class APIResponse:
    """Parsed HTTP response."""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float

    @property
    def is_success(self) -> bool:
        """Any 2xx status."""
        return 200 <= self.status_code <= 299

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.raw_content.decode('utf-8', errors='replace')


class TransportError(Exception):
    """DNS, connect, TLS or timeout failure, with any partial response that arrived."""

    def __init__(self, message: str, response: Optional[APIResponse] = None):
        self.message = message
        self.response = response
        super().__init__(self.message)


QueryParams = Union[Dict[str, Any], List[Tuple[str, str]]]


def parse_body(content: bytes) -> Any:
    """None for an empty body, parsed JSON when valid, raw text otherwise."""
    if not content:
        return None
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return content.decode('utf-8', errors='replace')


class BaseAPIClient:
    """Subclasses add one method per remote operation on top of :meth:`_request`."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[httpx.Timeout] = None,
        headers: Optional[Dict[str, str]] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False
    ):
        """
        Args:
            base_url: API root, without trailing slash
            timeout: None keeps the httpx defaults
            headers: extra default headers
            auth_token: sent as a Bearer token
            transport: custom transport, e.g. httpx.MockTransport in tests
            debug: log every request and response at DEBUG
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.debug = debug
        self._transport = transport

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if headers:
            self.default_headers.update(headers)

        if auth_token:
            self.set_auth_token(auth_token)

        self._client: Optional[httpx.AsyncClient] = None

    def set_auth_token(self, token: str, header_name: str = "Authorization", prefix: str = "Bearer"):
        """Set the Authorization header."""
        self.default_headers[header_name] = f"{prefix} {token}" if prefix else token

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created httpx client."""
        if self._client is None:
            kwargs: Dict[str, Any] = {"transport": self._transport}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self):
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.lstrip('/')
        return f"{self.base_url}/{endpoint}"

    def _log_request(self, method: str, url: str, **kwargs):
        if self.debug:
            logger.debug(
                "api_request",
                method=method,
                url=url,
                params=kwargs.get("params"),
                json=kwargs.get("json"),
            )

    def _log_response(self, response: APIResponse):
        if self.debug:
            logger.debug(
                "api_response",
                status_code=response.status_code,
                elapsed_ms=response.elapsed_ms,
            )

    @staticmethod
    def _wrap(response: httpx.Response, start_time: datetime) -> APIResponse:
        elapsed = (datetime.now() - start_time).total_seconds() * 1000
        return APIResponse(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            data=parse_body(response.content),
            raw_content=response.content,
            elapsed_ms=elapsed,
        )

    def _wrap_partial(self, response: Any, start_time: datetime) -> Optional[APIResponse]:
        """Response attached to a transport exception, if it was fully read."""
        if not isinstance(response, httpx.Response):
            return None
        try:
            return self._wrap(response, start_time)
        except httpx.ResponseNotRead:
            return None

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        params: Optional[QueryParams] = None,
        json_data: Optional[Union[Dict[str, Any], BaseModel]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> APIResponse:
        """
        Send one request.

        Returns:
            APIResponse: the response, whatever its status code

        Raises:
            TransportError: no usable response was received
        """
        if isinstance(method, HTTPMethod):
            method = method.value

        url = self._build_url(endpoint)

        request_headers = {**self.default_headers}
        if headers:
            request_headers.update(headers)

        if isinstance(json_data, BaseModel):
            json_data = json_data.model_dump(mode="json", exclude_none=True, by_alias=True)

        self._log_request(method, url, params=params, json=json_data)

        start_time = datetime.now()
        try:
            response = await self.client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=request_headers,
            )
        except httpx.HTTPError as exc:
            partial = getattr(exc, "response", None)
            raise TransportError(
                str(exc) or exc.__class__.__name__,
                response=self._wrap_partial(partial, start_time),
            ) from exc

        api_response = self._wrap(response, start_time)
        self._log_response(api_response)
        return api_response
