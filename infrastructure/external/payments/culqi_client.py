"""
Culqi REST adapter (https://api.culqi.com/v2).

Every operation goes through :meth:`CulqiClient.dispatch`, which

- encodes list filters into the query string,
- forces ``Accept-Encoding: identity`` so bodies and headers are logged as sent,
- turns transport failures and non-JSON bodies into :class:`ErrorInfo`,
- persists one audit record per call whatever the outcome,
- returns ``Ok(value)`` for any 2xx response and ``Err(ErrorInfo)`` otherwise.

A 2xx body that does not fit its response model is still ``Ok``: the model is
built without validation. Nothing here raises for gateway or network failures.
"""
from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from application.dtos.culqi import (
    CULQI_SERVER_ERROR,
    Card,
    CardCreatePayload,
    CardUpdatePayload,
    CardsListRequest,
    CardsListResponse,
    Charge,
    ChargeCreatePayload,
    ChargeUpdatePayload,
    ChargesListRequest,
    ChargesListResponse,
    Customer,
    CustomerCreatePayload,
    CustomerCreation,
    CustomerUpdatePayload,
    CustomersListRequest,
    CustomersListResponse,
    ErrorInfo,
    GatewayResult,
    Order,
    OrderCreatePayload,
    OrderUpdatePayload,
    OrdersListRequest,
    OrdersListResponse,
    Refund,
    RefundCreatePayload,
    RefundUpdatePayload,
    RefundsListRequest,
    RefundsListResponse,
    Source,
)
from application.ports.gateway_log import GatewayLogSink
from application.utils.antifraud import normalize_contact_fields, rewrite_sandbox_email
from core.logging_config import get_logger
from core.settings import CulqiSettings, GatewayTimeouts
from domain.common.result import Err, Ok
from domain.gateway_log.entity import GatewayLog, OperationType
from infrastructure.external.api_clients.base import (
    APIResponse,
    BaseAPIClient,
    HTTPMethod,
    TransportError,
)
from infrastructure.external.api_clients.query import encode_query_params


PROVIDER = "culqi"

logger = get_logger(__name__, provider=PROVIDER)

M = TypeVar("M", bound=BaseModel)

TRACKING_ID_HEADER = "x-culqi-tracking-id"
VERSION_HEADER = "x-culqi-version"

DUPLICATE_EMAIL_MESSAGE = "Un cliente esta registrado actualmente con este email."

ORIGINAL_EMAIL_METADATA_KEY = "originalEmail"
ENV_METADATA_KEY = "env"


def is_duplicate_email_error(error: Optional[ErrorInfo]) -> bool:
    """Culqi signals an existing customer only through this literal message."""
    return error is not None and error.merchant_message == DUPLICATE_EMAIL_MESSAGE


def _error_from_body(payload: Any, status_code: int) -> ErrorInfo:
    if isinstance(payload, dict):
        try:
            return ErrorInfo.model_validate(payload)
        except ValidationError:
            logger.warning("culqi_error_body_unparsed", http_code=status_code)
            return ErrorInfo(merchant_message=str(payload), user_message=CULQI_SERVER_ERROR)
    return ErrorInfo(
        merchant_message=f"Culqi responded with HTTP {status_code}",
        user_message=CULQI_SERVER_ERROR,
    )


def _build_timeout(cfg: GatewayTimeouts) -> Optional[httpx.Timeout]:
    if cfg.total is None and cfg.connect is None and cfg.read is None and cfg.write is None:
        return None
    return httpx.Timeout(cfg.total, connect=cfg.connect, read=cfg.read, write=cfg.write)


def _dump(model: Any) -> Optional[dict[str, Any]]:
    if model is None:
        return None
    if isinstance(model, BaseModel):
        return model.model_dump(mode="json", exclude_none=True, by_alias=True)
    return dict(model)


class CulqiClient(BaseAPIClient):
    provider = PROVIDER

    def __init__(
        self,
        settings: CulqiSettings,
        gateway_log: Optional[GatewayLogSink] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=settings.base_url,
            timeout=_build_timeout(settings.timeouts),
            auth_token=settings.secret_key,
            transport=transport,
        )
        self._settings = settings
        self._gateway_log = gateway_log

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        operation: OperationType,
        method: HTTPMethod,
        url: str,
        *,
        params: Optional[Any] = None,
        data: Optional[Any] = None,
        response_model: Optional[Type[M]] = None,
    ) -> GatewayResult[Any]:
        """Send one request and normalize its outcome into a Result."""
        body = _dump(data)
        query_source = _dump(params)
        log = GatewayLog(
            operation=operation,
            url=url[1:] if url.startswith("/") else url,
            request=body if body is not None else query_source,
        )
        response: Optional[APIResponse] = None
        transport_error: Optional[ErrorInfo] = None
        raw_body = False

        try:
            query = encode_query_params(query_source) if query_source is not None else None
            log.mark_started()
            response = await self._request(
                method,
                url,
                params=query,
                json_data=body,
                headers={"Accept-Encoding": "identity"},
            )
        except TransportError as exc:
            transport_error = ErrorInfo.from_transport(exc.message)
            response = exc.response
            logger.warning(
                "culqi_transport_error",
                operation=operation.value,
                url=log.url,
                error=exc.message,
            )
        finally:
            log.mark_finished()

            if response is not None:
                log.http_code = response.status_code
                if isinstance(response.data, str):
                    raw_body = True
                    response.data = ErrorInfo.from_raw_body(response.data).model_dump()
                log.response = response.data if response.data is not None else {}
                log.tracking_id = response.header(TRACKING_ID_HEADER)
                log.culqi_version = response.header(VERSION_HEADER)

            await self._persist(log)

        logger.info(
            "culqi_request_completed",
            operation=operation.value,
            http_code=log.http_code,
            elapsed_ms=log.elapsed_ms,
            tracking_id=log.tracking_id or None,
        )

        if response is None:
            return Err(transport_error or ErrorInfo.from_transport("No response received"))

        return self._classify(operation, response, raw_body, response_model)

    def _classify(
        self,
        operation: OperationType,
        response: APIResponse,
        raw_body: bool,
        response_model: Optional[Type[M]],
    ) -> GatewayResult[Any]:
        payload = response.data

        if not response.is_success:
            return Err(_error_from_body(payload, response.status_code))

        if raw_body:
            logger.warning("culqi_raw_success_body", operation=operation.value, http_code=response.status_code)

        if response_model is None:
            return Ok(payload)

        try:
            return Ok(response_model.model_validate(payload if payload is not None else {}))
        except ValidationError as exc:
            logger.warning(
                "culqi_response_unexpected_shape",
                operation=operation.value,
                model=response_model.__name__,
                errors=exc.error_count(),
            )
            # 2xx stays Ok: hand back the body unvalidated
            return Ok(response_model.model_construct(**(payload if isinstance(payload, dict) else {})))

    async def _persist(self, log: GatewayLog) -> None:
        if not self._settings.log_requests or self._gateway_log is None:
            return
        try:
            await self._gateway_log.persist(log)
        except Exception:
            logger.exception("culqi_log_persist_failed", operation=log.operation.value, url=log.url)

    def _apply_sandbox_email(self, email: str, metadata: Optional[dict[str, Any]]) -> tuple[str, dict[str, Any]]:
        """Route sandbox traffic to the developer inbox, keeping the original email."""
        metadata = dict(metadata or {})
        metadata[ORIGINAL_EMAIL_METADATA_KEY] = email
        if self._settings.app_env:
            metadata[ENV_METADATA_KEY] = self._settings.app_env
        return self._settings.dev_email, metadata

    @property
    def _rewrites_sandbox_emails(self) -> bool:
        return self._settings.is_test_env and bool(self._settings.dev_email)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def get_customer(self, customer_id: str) -> GatewayResult[Customer]:
        return await self.dispatch(
            OperationType.GET_CUSTOMER, HTTPMethod.GET, f"/customers/{customer_id}",
            response_model=Customer,
        )

    async def list_customers(
        self, filters: Optional[CustomersListRequest] = None
    ) -> GatewayResult[CustomersListResponse]:
        return await self.dispatch(
            OperationType.LIST_CUSTOMERS, HTTPMethod.GET, "/customers",
            params=filters, response_model=CustomersListResponse,
        )

    async def create_customer(self, payload: CustomerCreatePayload) -> GatewayResult[CustomerCreation]:
        """Create a customer, or return the existing one registered with the same email."""
        request = payload.model_copy(deep=True)
        normalize_contact_fields(request)

        if self._settings.is_test_env and self._settings.app_env:
            request.email = rewrite_sandbox_email(request.email, self._settings.app_env)

        result = await self.dispatch(
            OperationType.CREATE_CUSTOMER, HTTPMethod.POST, "/customers",
            data=request, response_model=Customer,
        )

        if isinstance(result, Err):
            if not is_duplicate_email_error(result.error):
                return result

            listed = await self.list_customers(CustomersListRequest(email=request.email))
            if isinstance(listed, Err):
                return listed
            if not listed.value.data:
                logger.warning("culqi_duplicate_customer_not_listed", email=request.email)
                return result
            return Ok(CustomerCreation(customer=listed.value.data[0], already_existed=True))

        return Ok(CustomerCreation(customer=result.value, already_existed=False))

    async def update_customer(
        self, customer_id: str, update: CustomerUpdatePayload
    ) -> GatewayResult[Customer]:
        return await self.dispatch(
            OperationType.UPDATE_CUSTOMER, HTTPMethod.PATCH, f"/customers/{customer_id}",
            data=update, response_model=Customer,
        )

    async def delete_customer(self, customer_id: str) -> GatewayResult[bool]:
        # NOTE: issued as GET, matching the wire behaviour this integration has
        # always had; see DESIGN.md before switching it to DELETE.
        result = await self.dispatch(
            OperationType.DELETE_CUSTOMER, HTTPMethod.GET, f"/customers/{customer_id}",
        )
        if isinstance(result, Err):
            return result
        return Ok(True)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def get_token(self, token_id: str) -> GatewayResult[Source]:
        return await self.dispatch(
            OperationType.GET_TOKEN, HTTPMethod.GET, f"/tokens/{token_id}",
            response_model=Source,
        )

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    async def list_cards(self, filters: Optional[CardsListRequest] = None) -> GatewayResult[CardsListResponse]:
        return await self.dispatch(
            OperationType.LIST_CARDS, HTTPMethod.GET, "/cards",
            params=filters, response_model=CardsListResponse,
        )

    async def get_cards_by_customer(self, customer_id: str) -> GatewayResult[list[Card]]:
        result = await self.get_customer(customer_id)
        if isinstance(result, Err):
            return result
        return Ok(list(result.value.cards or []))

    async def get_card(self, card_id: str) -> GatewayResult[Card]:
        return await self.dispatch(
            OperationType.GET_CARD, HTTPMethod.GET, f"/cards/{card_id}",
            response_model=Card,
        )

    async def create_card(self, payload: CardCreatePayload) -> GatewayResult[Card]:
        return await self.dispatch(
            OperationType.CREATE_CARD, HTTPMethod.POST, "/cards",
            data=payload, response_model=Card,
        )

    async def update_card(self, card_id: str, update: CardUpdatePayload) -> GatewayResult[Card]:
        return await self.dispatch(
            OperationType.UPDATE_CARD, HTTPMethod.PATCH, f"/cards/{card_id}",
            data=update, response_model=Card,
        )

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    async def list_charges(
        self, filters: Optional[ChargesListRequest] = None
    ) -> GatewayResult[ChargesListResponse]:
        return await self.dispatch(
            OperationType.LIST_CHARGES, HTTPMethod.GET, "/charges",
            params=filters, response_model=ChargesListResponse,
        )

    async def get_charge(self, charge_id: str) -> GatewayResult[Charge]:
        return await self.dispatch(
            OperationType.GET_CHARGE, HTTPMethod.GET, f"/charges/{charge_id}",
            response_model=Charge,
        )

    async def create_charge(self, payload: ChargeCreatePayload) -> GatewayResult[Charge]:
        request = payload.model_copy(deep=True)
        if request.antifraud_details is not None:
            normalize_contact_fields(request.antifraud_details)

        if self._rewrites_sandbox_emails:
            request.email, request.metadata = self._apply_sandbox_email(request.email, request.metadata)

        return await self.dispatch(
            OperationType.CREATE_CHARGE, HTTPMethod.POST, "/charges",
            data=request, response_model=Charge,
        )

    async def capture_charge(self, charge_id: str) -> GatewayResult[Charge]:
        return await self.dispatch(
            OperationType.CAPTURE_CHARGE, HTTPMethod.POST, f"/charges/{charge_id}/capture",
            response_model=Charge,
        )

    async def update_charge(self, charge_id: str, update: ChargeUpdatePayload) -> GatewayResult[Charge]:
        return await self.dispatch(
            OperationType.UPDATE_CHARGE, HTTPMethod.PATCH, f"/charges/{charge_id}",
            data=update, response_model=Charge,
        )

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def list_refunds(
        self, filters: Optional[RefundsListRequest] = None
    ) -> GatewayResult[RefundsListResponse]:
        return await self.dispatch(
            OperationType.LIST_REFUNDS, HTTPMethod.GET, "/refunds",
            params=filters, response_model=RefundsListResponse,
        )

    async def get_refund(self, refund_id: str) -> GatewayResult[Refund]:
        return await self.dispatch(
            OperationType.GET_REFUND, HTTPMethod.GET, f"/refunds/{refund_id}",
            response_model=Refund,
        )

    async def create_refund(self, payload: RefundCreatePayload) -> GatewayResult[Refund]:
        return await self.dispatch(
            OperationType.CREATE_REFUND, HTTPMethod.POST, "/refunds",
            data=payload, response_model=Refund,
        )

    async def update_refund(self, refund_id: str, update: RefundUpdatePayload) -> GatewayResult[Refund]:
        return await self.dispatch(
            OperationType.UPDATE_REFUND, HTTPMethod.PATCH, f"/refunds/{refund_id}",
            data=update, response_model=Refund,
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def list_orders(self, filters: Optional[OrdersListRequest] = None) -> GatewayResult[OrdersListResponse]:
        return await self.dispatch(
            OperationType.LIST_ORDERS, HTTPMethod.GET, "/orders",
            params=filters, response_model=OrdersListResponse,
        )

    async def get_order(self, order_id: str) -> GatewayResult[Order]:
        return await self.dispatch(
            OperationType.GET_ORDER, HTTPMethod.GET, f"/orders/{order_id}",
            response_model=Order,
        )

    async def create_order(self, payload: OrderCreatePayload) -> GatewayResult[Order]:
        request = payload.model_copy(deep=True)

        if self._rewrites_sandbox_emails:
            request.client_details.email, request.metadata = self._apply_sandbox_email(
                request.client_details.email, request.metadata
            )

        return await self.dispatch(
            OperationType.CREATE_ORDER, HTTPMethod.POST, "/orders",
            data=request, response_model=Order,
        )

    async def confirm_order(self, order_id: str) -> GatewayResult[Order]:
        return await self.dispatch(
            OperationType.CONFIRM_ORDER, HTTPMethod.POST, f"/orders/{order_id}/confirm",
            response_model=Order,
        )

    async def update_order(self, order_id: str, update: OrderUpdatePayload) -> GatewayResult[Order]:
        return await self.dispatch(
            OperationType.UPDATE_ORDER, HTTPMethod.PATCH, f"/orders/{order_id}",
            data=update, response_model=Order,
        )

    async def delete_order(self, order_id: str) -> GatewayResult[bool]:
        result = await self.dispatch(
            OperationType.DELETE_ORDER, HTTPMethod.DELETE, f"/orders/{order_id}",
        )
        if isinstance(result, Err):
            return result
        return Ok(True)
