import pytest
from types import SimpleNamespace

from orders.errors import ExternalServiceError, InvalidTransitionError
from orders.models import LifecycleState
from payments.paynow_service import PaynowService


class FakePayment:
    def __init__(self, reference, email):
        self.reference = reference
        self.email = email
        self.items = []

    def add(self, title, amount):
        self.items.append((title, amount))


class FakePaynow:
    def __init__(self, send_result=None, send_error=None, status=None):
        self.send_result = send_result
        self.send_error = send_error
        self.status = status
        self.payments = []

    def create_payment(self, reference, email):
        payment = FakePayment(reference, email)
        self.payments.append(payment)
        return payment

    def send(self, payment):
        if self.send_error:
            raise self.send_error
        return self.send_result

    def check_transaction_status(self, poll_url):
        return self.status

    def process_status_update(self, data):
        return self.status


@pytest.fixture
def payment_pending(lifecycle, open_request):
    _, bid = lifecycle.submit_bid(open_request.id, "rider_1", 1500, "30 mins")
    return lifecycle.accept_bid(open_request.id, bid.id).request


def test_initiate_payment_charges_total(lifecycle, payment_pending):
    gateway = FakePaynow(send_result=SimpleNamespace(
        success=True, poll_url="https://paynow.test/poll/1", redirect_url="https://paynow.test/pay/1",
    ))
    service = PaynowService(lifecycle, paynow=gateway)

    result = service.initiate_payment(payment_pending, "ada@example.com")

    assert result["success"]
    assert result["reference"].startswith("TRIPPA-")
    assert result["redirect_url"] == "https://paynow.test/pay/1"
    assert gateway.payments[0].items == [(f"Delivery {payment_pending.id}", 2700.0)]


def test_initiate_payment_requires_pending_payment(lifecycle, open_request):
    service = PaynowService(lifecycle, paynow=FakePaynow())

    with pytest.raises(InvalidTransitionError):
        service.initiate_payment(open_request, "ada@example.com")


def test_gateway_rejection_is_not_success(lifecycle, payment_pending):
    gateway = FakePaynow(send_result=SimpleNamespace(success=False, error="Invalid amount"))
    service = PaynowService(lifecycle, paynow=gateway)

    result = service.initiate_payment(payment_pending, "ada@example.com")

    assert result["success"] is False
    assert result["error"] == "Invalid amount"


def test_gateway_unreachable(lifecycle, payment_pending):
    service = PaynowService(lifecycle, paynow=FakePaynow(send_error=ConnectionError("no route")))

    with pytest.raises(ExternalServiceError):
        service.initiate_payment(payment_pending, "ada@example.com")


def test_paid_status_update_confirms_payment(lifecycle, payment_pending):
    status = SimpleNamespace(paid=True, status="Paid", reference="TRIPPA-1-1", amount="2700.00")
    service = PaynowService(lifecycle, paynow=FakePaynow(status=status))

    first = service.handle_status_update(payment_pending.id, {"reference": "TRIPPA-1-1"})
    second = service.handle_status_update(payment_pending.id, {"reference": "TRIPPA-1-1"})

    assert first == second == {"success": True, "paid": True, "reference": "TRIPPA-1-1", "state": "payment_confirmed"}
    assert lifecycle.get(payment_pending.id).payment_reference == "TRIPPA-1-1"


def test_cancelled_payment_leaves_lifecycle_alone(lifecycle, payment_pending):
    status = SimpleNamespace(paid=False, status="Cancelled", reference="TRIPPA-1-1")
    service = PaynowService(lifecycle, paynow=FakePaynow(status=status))

    result = service.poll(payment_pending.id, "https://paynow.test/poll/1")

    assert result == {"success": True, "paid": False, "status": "Cancelled"}
    assert lifecycle.get(payment_pending.id).state is LifecycleState.PAYMENT_PENDING


def test_missing_credentials(monkeypatch):
    monkeypatch.delenv("PAYNOW_INTEGRATION_ID", raising=False)
    monkeypatch.delenv("PAYNOW_INTEGRATION_KEY", raising=False)

    with pytest.raises(ValueError):
        PaynowService()
