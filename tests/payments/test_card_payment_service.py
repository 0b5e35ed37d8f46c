import pytest

from application.dtos.culqi import Card, Charge, Customer, CustomerCreation, ErrorInfo, Refund
from application.dtos.platform import (
    Address,
    Cart,
    LineItem,
    LineItemVariant,
    Payment,
    PaymentContext,
    PaymentSession,
    PaymentSessionStatus,
    PlatformCustomer,
    UpdatePaymentData,
)
from application.services.card_payment_service import CulqiCardPaymentService
from domain.common.exceptions import (
    GatewayUnauthorizedException,
    InvalidPaymentDataException,
    PaymentNotFoundException,
    UnexpectedPaymentStateException,
)
from domain.common.result import Err, Ok
from tests.fakes import StubCartStore, StubCustomerStore


class StubGateway:
    provider = "culqi"

    def __init__(self, **results):
        self.calls = []
        self.results = {
            "create_customer": Ok(CustomerCreation(customer=Customer(id="cus_new"))),
            "update_customer": Ok(Customer(id="cus_1")),
            "delete_customer": Ok(True),
            "create_card": Ok(Card(id="crd_saved")),
            "create_charge": Ok(Charge.model_validate(SUCCESSFUL_CHARGE)),
            "capture_charge": Ok(Charge.model_validate(SUCCESSFUL_CHARGE)),
            "get_charge": Ok(Charge.model_validate(SUCCESSFUL_CHARGE)),
            "create_refund": Ok(Refund(id="ref_1")),
        }
        self.results.update(results)

    def _record(self, name, *args):
        self.calls.append((name, *args))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        return result

    async def create_customer(self, payload):
        return self._record("create_customer", payload)

    async def update_customer(self, customer_id, update):
        return self._record("update_customer", customer_id, update)

    async def delete_customer(self, customer_id):
        return self._record("delete_customer", customer_id)

    async def create_card(self, payload):
        return self._record("create_card", payload)

    async def create_charge(self, payload):
        return self._record("create_charge", payload)

    async def capture_charge(self, charge_id):
        return self._record("capture_charge", charge_id)

    async def get_charge(self, charge_id):
        return self._record("get_charge", charge_id)

    async def create_refund(self, payload):
        return self._record("create_refund", payload)

    async def get_cards_by_customer(self, customer_id):
        return self._record("get_cards_by_customer", customer_id)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


SUCCESSFUL_CHARGE = {
    "id": "chr_1",
    "capture": True,
    "reference_code": "REF1",
    "authorization_code": "AUTH1",
    "outcome": {"type": "venta_exitosa", "merchant_message": "La operación de venta ha sido autorizada exitosamente"},
}

SHIPPING = Address(
    first_name="Beto",
    last_name="Garcia",
    phone="222",
    address_1="Av. Arequipa 123",
    city="Lima",
    country_code="pe",
)

BILLING = Address(
    first_name="Carla",
    last_name="Diaz",
    phone="333",
    address_1="Jr. Cusco 9",
    city="Cusco",
    country_code="pe",
)

CART = Cart(
    id="cart_1",
    email="a@b.com",
    shipping_address=SHIPPING,
    items=[
        LineItem(title="Café", quantity=2, unit_price=2550, variant=LineItemVariant(product_id="prod_1")),
    ],
)


def _service(gateway=None, customers=None, capture=False):
    return CulqiCardPaymentService(
        gateway or StubGateway(),
        customers or StubCustomerStore(),
        StubCartStore(CART),
        capture=capture,
    )


def _context(customer=None, email="a@b.com", recurring=False):
    cart = CART.model_copy(update={"email": email})
    return PaymentContext(
        cart=cart,
        customer=customer,
        currency_code="pen",
        amount=5100,
        context={"isRecurringOrder": recurring},
    )


def _session_data(**overrides):
    data = {
        "customer_id": "cus_1",
        "customer": {"id": "c1", "has_account": False, "metadata": {}},
        "shipping_address": SHIPPING.model_dump(exclude_none=True),
        "is_recurring_order": False,
    }
    data.update(overrides)
    return data


# ----------------------------------------------------------------------
# create_payment / update_payment
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_payment_links_new_customer():
    gateway = StubGateway()
    customer = PlatformCustomer(id="c1", email="a@b.com", first_name="Ana", last_name="Lopez", phone="111")

    response = await _service(gateway).create_payment(_context(customer))

    data = response.session_data
    assert data["customer_id"] == "cus_new"
    assert data["currency"] == "pen"
    assert data["amount"] == 5100
    assert data["antifraud_details"]["first_name"] == "Ana"
    assert data["antifraud_details"]["country_code"] == "PE"
    assert data["is_recurring_order"] is False
    assert response.update_requests == {"customer_metadata": {"culqi_customer_id": "cus_new"}}


@pytest.mark.asyncio
async def test_create_payment_with_known_customer_requests_no_update():
    gateway = StubGateway()
    customer = PlatformCustomer(id="c1", metadata={"culqi_customer_id": "cus_known"})

    response = await _service(gateway).create_payment(_context(customer))

    assert response.session_data["customer_id"] == "cus_known"
    assert response.update_requests == {"customer_metadata": {}}
    assert gateway.called("create_customer") == []


@pytest.mark.asyncio
async def test_create_payment_raises_when_customer_cannot_be_linked():
    gateway = StubGateway(create_customer=Err(ErrorInfo(merchant_message="email invalido")))

    with pytest.raises(UnexpectedPaymentStateException, match="email invalido"):
        await _service(gateway).create_payment(_context())


@pytest.mark.asyncio
async def test_update_payment_keeps_customer_when_unchanged():
    gateway = StubGateway()
    session = _session_data(email="a@b.com", customer=None, antifraud_details_from_billing_address=True)

    updated = await _service(gateway).update_payment(session, _context())

    assert updated["customer_id"] == "cus_1"
    assert updated["antifraud_details_from_billing_address"] is False
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_update_payment_relinks_and_drops_previous_guest():
    gateway = StubGateway()
    old_guest = {"id": "c_old", "has_account": False, "metadata": {"culqi_customer_id": "cus_old"}}
    new_customer = PlatformCustomer(id="c_new", email="new@b.com")

    updated = await _service(gateway).update_payment(
        _session_data(email="old@b.com", customer=old_guest), _context(new_customer, email="new@b.com")
    )

    assert updated["customer_id"] == "cus_new"
    assert updated["customer"]["metadata"]["culqi_customer_id"] == "cus_new"
    assert gateway.called("delete_customer") == [("delete_customer", "cus_old")]


# ----------------------------------------------------------------------
# update_payment_data
# ----------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data, session, message",
    [
        (UpdatePaymentData(same_as_shipping_address=True), {}, "Card id or card token is required"),
        (UpdatePaymentData(card_token="tkn_1"), {}, "Billing address is required"),
        (
            UpdatePaymentData(same_as_shipping_address=True, card_token="tkn_1"),
            {"is_recurring_order": True},
            "Saving a card is required for recurring orders",
        ),
    ],
)
async def test_update_payment_data_validation(data, session, message):
    gateway = StubGateway()

    with pytest.raises(InvalidPaymentDataException) as exc_info:
        await _service(gateway).update_payment_data(_session_data(**session), data)

    assert exc_info.value.message == message
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_update_payment_data_with_existing_card():
    customers = StubCustomerStore()
    gateway = StubGateway()
    session = _session_data(customer={"id": "c1", "has_account": True, "metadata": {"tier": "gold"}})

    updated = await _service(gateway, customers).update_payment_data(
        session, UpdatePaymentData(same_as_shipping_address=True, card_id="crd_9")
    )

    assert updated["source_id"] == "crd_9"
    assert "antifraud_details_from_billing_address" not in updated
    assert customers.updates == [("c1", {"tier": "gold", "last_used_culqi_card_id": "crd_9"})]
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_update_payment_data_new_billing_address_for_guest():
    gateway = StubGateway()

    updated = await _service(gateway).update_payment_data(
        _session_data(), UpdatePaymentData(billing_address=BILLING, card_token="tkn_1", save_card=True)
    )

    assert updated["source_id"] == "crd_saved"
    assert updated["antifraud_details"]["first_name"] == "Carla"
    assert updated["antifraud_details"]["address_city"] == "Cusco"
    assert updated["antifraud_details_from_billing_address"] is True

    (_, card_payload) = gateway.called("create_card")[0]
    assert card_payload.customer_id == "cus_1"
    assert card_payload.metadata.cardHolderName == "Carla Diaz"

    (_, culqi_id, update) = gateway.called("update_customer")[0]
    assert culqi_id == "cus_1"
    assert update.first_name == "Carla"
    assert update.address_city == "Cusco"


@pytest.mark.asyncio
async def test_update_payment_data_uses_token_when_not_saving():
    updated = await _service().update_payment_data(
        _session_data(customer=None), UpdatePaymentData(same_as_shipping_address=True, card_token="tkn_1")
    )

    assert updated["source_id"] == "tkn_1"


@pytest.mark.asyncio
async def test_update_payment_data_tolerates_concurrent_failures():
    gateway = StubGateway(update_customer=Err(ErrorInfo(merchant_message="culqi down")))
    customers = StubCustomerStore(fail=True)

    updated = await _service(gateway, customers).update_payment_data(
        _session_data(), UpdatePaymentData(billing_address=BILLING, card_id="crd_9")
    )

    assert updated["source_id"] == "crd_9"
    assert len(gateway.called("update_customer")) == 1
    assert len(customers.updates) == 1


@pytest.mark.asyncio
async def test_update_payment_data_tolerates_gateway_exception():
    gateway = StubGateway(update_customer=RuntimeError("boom"))
    customers = StubCustomerStore()

    await _service(gateway, customers).update_payment_data(
        _session_data(), UpdatePaymentData(billing_address=BILLING, card_id="crd_9")
    )

    assert len(customers.updates) == 1


@pytest.mark.asyncio
async def test_reverting_to_shipping_address_recomputes_antifraud():
    updated = await _service().update_payment_data(
        _session_data(customer=None, antifraud_details_from_billing_address=True),
        UpdatePaymentData(same_as_shipping_address=True, card_id="crd_9"),
    )

    assert updated["antifraud_details"]["first_name"] == "Beto"
    assert updated["antifraud_details_from_billing_address"] is False


# ----------------------------------------------------------------------
# authorize / capture / refund / retrieve
# ----------------------------------------------------------------------

def _payment_session(**data):
    base = {
        "currency": "pen",
        "email": "a@b.com",
        "source_id": "crd_9",
        "antifraud_details": {"first_name": "Ana", "last_name": "Lopez"},
    }
    base.update(data)
    return PaymentSession(cart_id="cart_1", amount=5100, data=base)


@pytest.mark.asyncio
async def test_authorize_payment_builds_charge_from_cart():
    gateway = StubGateway()

    result = await _service(gateway, capture=True).authorize_payment(_payment_session())

    (_, charge) = gateway.called("create_charge")[0]
    assert charge.amount == 5100
    assert charge.currency_code == "PEN"
    assert charge.capture is True
    assert charge.description == "Medusa Order for cart cart_1"
    assert charge.source_id == "crd_9"
    assert charge.metadata == {
        "lineItems": [{"id": "prod_1", "name": "Café", "quantity": 2, "price": 25.5}]
    }
    assert result.status is PaymentSessionStatus.AUTHORIZED
    assert result.data["charge_id"] == "chr_1"
    assert result.data["authorization_code"] == "AUTH1"
    assert result.data["capture_result"] == SUCCESSFUL_CHARGE["outcome"]["merchant_message"]


@pytest.mark.asyncio
async def test_authorize_payment_pending_outcome():
    charge = Charge(id="chr_2", outcome={"type": "venta_pendiente"})
    result = await _service(StubGateway(create_charge=Ok(charge))).authorize_payment(_payment_session())

    assert result.status is PaymentSessionStatus.PENDING
    assert result.data == {"charge_id": "chr_2", "outcome_type": "venta_pendiente", "reference_code": None}


@pytest.mark.asyncio
async def test_authorize_payment_error_marks_recurring_failure():
    gateway = StubGateway(create_charge=Err(ErrorInfo(type="card_error")))

    result = await _service(gateway).authorize_payment(_payment_session(is_recurring_order=True))

    assert result.status is PaymentSessionStatus.ERROR
    assert result.data == {"recurring_payment_failed": True, "outcome_type": "error"}


@pytest.mark.asyncio
async def test_capture_payment_records_capture_result():
    payment = Payment(data={"charge_id": "chr_1", "reference_code": "REF1"})

    data = await _service().capture_payment(payment)

    assert data["reference_code"] == "REF1"
    assert data["capture_result"] == SUCCESSFUL_CHARGE["outcome"]["merchant_message"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected",
    [
        (ErrorInfo(type="parameter_error"), PaymentNotFoundException),
        (ErrorInfo(type="authentication_error"), GatewayUnauthorizedException),
        (ErrorInfo(type="api_error"), UnexpectedPaymentStateException),
    ],
)
async def test_capture_payment_error_classification(error, expected):
    gateway = StubGateway(capture_charge=Err(error))

    with pytest.raises(expected):
        await _service(gateway).capture_payment(Payment(data={"charge_id": "chr_1"}))


@pytest.mark.asyncio
async def test_unclassified_error_carries_charge_id():
    gateway = StubGateway(get_charge=Err(ErrorInfo(type="api_error")))

    with pytest.raises(UnexpectedPaymentStateException) as exc_info:
        await _service(gateway).retrieve_payment({"charge_id": "chr_7"})

    assert exc_info.value.message == "Error retrieving charge: chr_7"


@pytest.mark.asyncio
async def test_refund_payment_requests_customer_refund():
    gateway = StubGateway()
    payment = Payment(data={"charge_id": "chr_1"})

    data = await _service(gateway).refund_payment(payment, 1000)

    (_, refund) = gateway.called("create_refund")[0]
    assert (refund.amount, refund.charge_id, refund.reason.value) == (1000, "chr_1", "solicitud_comprador")
    assert data == {"charge_id": "chr_1"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected, message",
    [
        (ErrorInfo(type="parameter_error", param="charge_id"), PaymentNotFoundException, "Charge not found"),
        (
            ErrorInfo(type="parameter_error", param="amount"),
            InvalidPaymentDataException,
            "Amount cannot be greater than the remaining amount",
        ),
        (ErrorInfo(type="authentication_error"), GatewayUnauthorizedException, "Invalid Culqi API Key"),
        (ErrorInfo(type="parameter_error", param="reason"), UnexpectedPaymentStateException, "Error refunding charge: chr_1"),
    ],
)
async def test_refund_error_classification(error, expected, message):
    gateway = StubGateway(create_refund=Err(error))

    with pytest.raises(expected) as exc_info:
        await _service(gateway).refund_payment(Payment(data={"charge_id": "chr_1"}), 1000)

    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_retrieve_payment_returns_charge_body():
    data = await _service().retrieve_payment({"charge_id": "chr_1"})

    assert data["id"] == "chr_1"
    assert data["outcome"]["type"] == "venta_exitosa"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "outcome, status",
    [
        ("venta_exitosa", PaymentSessionStatus.AUTHORIZED),
        ("error", PaymentSessionStatus.ERROR),
        (None, PaymentSessionStatus.PENDING),
    ],
)
async def test_get_status(outcome, status):
    assert await _service().get_status({"outcome_type": outcome}) is status


@pytest.mark.asyncio
async def test_get_payment_data_and_noops():
    service = _service()
    session = _payment_session(charge_id="chr_1", outcome_type="venta_exitosa", reference_code="REF1")

    data = await service.get_payment_data(session)
    assert data["charge_id"] == "chr_1"
    assert data["capture_result"] is None

    payment = Payment(data={"charge_id": "chr_1"})
    assert await service.cancel_payment(payment) == {"charge_id": "chr_1"}
    assert await service.delete_payment(session) is None
