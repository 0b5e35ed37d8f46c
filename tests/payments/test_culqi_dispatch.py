import httpx
import pytest

from application.dtos.culqi import CULQI_SERVER_ERROR, Charge, ErrorInfo
from domain.common.result import Err, Ok
from domain.gateway_log import OperationType
from infrastructure.external.api_clients.base import HTTPMethod
from infrastructure.external.payments.culqi_client import CulqiClient
from tests.fakes import FailingSink, Recorder, json_response, make_settings


CHARGE = {
    "object": "charge",
    "id": "chr_live_1",
    "amount": 1000,
    "outcome": {"type": "venta_exitosa", "merchant_message": "ok"},
    "unknown_upstream_field": {"nested": True},
}

API_ERROR = {
    "object": "error",
    "type": "parameter_error",
    "code": "invalid_parameter",
    "merchant_message": "El id de cargo no existe",
    "user_message": "Cargo no encontrado",
    "param": "charge_id",
}


@pytest.mark.asyncio
async def test_success_returns_ok_with_body_unchanged(client_factory, sink):
    recorder = Recorder(json_response(200, CHARGE))
    client = client_factory(recorder)

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1", response_model=Charge
    )

    assert isinstance(result, Ok)
    assert result.value.model_dump(exclude_unset=True) == CHARGE
    assert recorder.last.url == "https://api.culqi.com/v2/charges/chr_live_1"
    assert recorder.last.headers["Authorization"] == "Bearer sk_live_0123456789"
    assert recorder.last.headers["Accept-Encoding"] == "identity"


@pytest.mark.asyncio
async def test_non_2xx_json_returns_err_with_body_unchanged(client_factory):
    client = client_factory(Recorder(json_response(400, API_ERROR)))

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/missing", response_model=Charge
    )

    assert isinstance(result, Err)
    assert result.error.model_dump(exclude_none=True) == API_ERROR


@pytest.mark.asyncio
async def test_transport_failure_yields_merchant_message_only(client_factory, sink):
    recorder = Recorder(httpx.ConnectError("connection refused"))
    client = client_factory(recorder)

    result = await client.dispatch(OperationType.LIST_CHARGES, HTTPMethod.GET, "/charges")

    assert isinstance(result, Err)
    assert result.is_err and not result.is_ok
    assert result.error.merchant_message == "connection refused"
    assert result.error.model_dump(exclude={"merchant_message"}) == {
        field: None for field in ErrorInfo.model_fields if field != "merchant_message"
    }
    assert len(sink.logs) == 1
    assert sink.logs[0].http_code is None
    assert sink.logs[0].response == {}
    assert sink.logs[0].end_date_utc is not None


@pytest.mark.asyncio
async def test_raw_string_body_is_wrapped(client_factory, sink):
    client = client_factory(Recorder(httpx.Response(502, text="<html>Bad Gateway</html>")))

    result = await client.dispatch(OperationType.CREATE_CHARGE, HTTPMethod.POST, "/charges", data={"amount": 1})

    assert isinstance(result, Err)
    assert result.error.merchant_message == "<html>Bad Gateway</html>"
    assert result.error.user_message == CULQI_SERVER_ERROR
    assert sink.logs[0].response["user_message"] == CULQI_SERVER_ERROR
    assert sink.logs[0].http_code == 502


@pytest.mark.asyncio
async def test_non_2xx_without_body_synthesizes_error(client_factory):
    client = client_factory(Recorder(httpx.Response(503)))

    result = await client.dispatch(OperationType.GET_ORDER, HTTPMethod.GET, "/orders/ord_1")

    assert isinstance(result, Err)
    assert "503" in result.error.merchant_message


@pytest.mark.asyncio
async def test_raw_string_body_on_2xx_is_still_ok(client_factory, sink):
    client = client_factory(Recorder(httpx.Response(200, text="upstream hiccup")))

    result = await client.dispatch(OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1")

    assert isinstance(result, Ok)
    assert result.value["merchant_message"] == "upstream hiccup"
    assert result.value["user_message"] == CULQI_SERVER_ERROR
    assert sink.logs[0].http_code == 200


@pytest.mark.asyncio
async def test_raw_string_body_on_2xx_with_model_is_ok(client_factory):
    client = client_factory(Recorder(httpx.Response(200, text="upstream hiccup")))

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1", response_model=Charge
    )

    assert isinstance(result, Ok)
    assert result.value.id is None
    assert result.value.merchant_message == "upstream hiccup"


@pytest.mark.asyncio
async def test_unexpected_success_shape_is_ok_with_unvalidated_model(client_factory):
    client = client_factory(Recorder(json_response(200, {"object": "charge", "id": "chr_1", "amount": "mil"})))

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_1", response_model=Charge
    )

    assert isinstance(result, Ok)
    assert isinstance(result.value, Charge)
    assert result.value.id == "chr_1"
    assert result.value.amount == "mil"
    assert result.value.outcome is None


@pytest.mark.asyncio
async def test_empty_2xx_body_is_ok(client_factory):
    client = client_factory(Recorder(httpx.Response(200)))

    result = await client.dispatch(
        OperationType.CAPTURE_CHARGE, HTTPMethod.POST, "/charges/chr_1/capture", response_model=Charge
    )

    assert isinstance(result, Ok)
    assert result.value.id is None


@pytest.mark.asyncio
async def test_numeric_error_code_is_kept_as_text(client_factory):
    client = client_factory(Recorder(json_response(500, {"code": 500, "merchant_message": "boom"})))

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_1", response_model=Charge
    )

    assert isinstance(result, Err)
    assert result.error.code == "500"
    assert result.error.merchant_message == "boom"


@pytest.mark.asyncio
async def test_unreadable_error_body_falls_back_to_server_error(client_factory, sink):
    body = {"type": ["api_error"], "merchant_message": {"detail": "boom"}}
    client = client_factory(Recorder(json_response(500, body)))

    result = await client.dispatch(OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_1")

    assert isinstance(result, Err)
    assert result.error.user_message == CULQI_SERVER_ERROR
    assert "boom" in result.error.merchant_message
    assert sink.logs[0].response == body


@pytest.mark.asyncio
async def test_audit_record_captures_tracking_headers_on_errors(client_factory, sink):
    headers = {"x-culqi-tracking-id": "trk_123", "x-culqi-version": "2"}
    client = client_factory(Recorder(json_response(401, {"type": "authentication_error"}, headers)))

    await client.dispatch(OperationType.LIST_CUSTOMERS, HTTPMethod.GET, "/customers", params={"email": "a@b.com"})

    (log,) = sink.logs
    assert log.operation is OperationType.LIST_CUSTOMERS
    assert log.url == "customers"
    assert log.request == {"email": "a@b.com"}
    assert log.http_code == 401
    assert log.tracking_id == "trk_123"
    assert log.culqi_version == "2"
    assert log.response == {"type": "authentication_error"}
    assert log.start_date_utc <= log.end_date_utc


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [json_response(200, CHARGE), json_response(404, API_ERROR), httpx.ReadTimeout("timed out")],
)
async def test_audit_persisted_exactly_once_per_call(client_factory, sink, response):
    client = client_factory(Recorder(response))

    await client.dispatch(OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1")

    assert len(sink.logs) == 1


@pytest.mark.asyncio
async def test_audit_skipped_when_logging_disabled(client_factory, sink):
    client = client_factory(Recorder(json_response(200, CHARGE)), log_requests=False)

    await client.dispatch(OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1")

    assert sink.logs == []


@pytest.mark.asyncio
async def test_audit_failure_never_reaches_caller():
    client = CulqiClient(
        make_settings(),
        FailingSink(),
        transport=httpx.MockTransport(Recorder(json_response(200, CHARGE))),
    )

    result = await client.dispatch(
        OperationType.GET_CHARGE, HTTPMethod.GET, "/charges/chr_live_1", response_model=Charge
    )

    assert isinstance(result, Ok)
    await client.aclose()


@pytest.mark.asyncio
async def test_list_filters_go_to_query_string(client_factory):
    recorder = Recorder(json_response(200, {"data": [], "paging": {}}))
    client = client_factory(recorder)

    await client.dispatch(
        OperationType.LIST_CHARGES,
        HTTPMethod.GET,
        "/charges",
        params={"amount": 100, "metadata": {"order": "o1"}},
    )

    assert recorder.last.url.params.multi_items() == [("amount", "100"), ("metadata.order", "o1")]
    assert recorder.last.content == b""


def test_factory_wires_database_backed_audit_log_by_default():
    from application.services.gateway_log_service import GatewayLogService
    from infrastructure.external.payments import get_culqi_client

    client = get_culqi_client(make_settings(secret_key="sk_test_abc"))

    assert isinstance(client, CulqiClient)
    assert isinstance(client._gateway_log, GatewayLogService)
    assert client.base_url == "https://api.culqi.com/v2"
    assert client.default_headers["Authorization"] == "Bearer sk_test_abc"
