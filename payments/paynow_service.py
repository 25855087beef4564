from paynow import Paynow
from dotenv import load_dotenv
import logging
import os
from typing import Any, Dict, Mapping, Optional

from orders.errors import ExternalServiceError, InvalidTransitionError
from orders.models import DeliveryRequest, LifecycleState

from .settlement import new_payment_reference

# Example in .env:
# PAYNOW_INTEGRATION_ID=12345
# PAYNOW_INTEGRATION_KEY=...
# PAYNOW_RETURN_URL=https://app.example.com/orders
# PAYNOW_RESULT_URL=https://api.example.com/payments/paynow/result
load_dotenv()

logger = logging.getLogger(__name__)


class PaynowService:
    """
    Payment gateway collaborator.

    initiate_payment() starts a checkout for a request's total_amount.
    handle_status_update() / poll() turn a paid gateway status into
    lifecycle.confirm_payment(request_id, reference); anything that is not
    "paid" leaves the lifecycle alone.
    """

    def __init__(self, lifecycle=None, paynow: Optional[Paynow] = None,
                 integration_id: Optional[str] = None, integration_key: Optional[str] = None,
                 return_url: Optional[str] = None, result_url: Optional[str] = None):
        self.lifecycle = lifecycle
        if paynow is not None:
            self.paynow = paynow
            return

        integration_id = integration_id or os.getenv("PAYNOW_INTEGRATION_ID")
        integration_key = integration_key or os.getenv("PAYNOW_INTEGRATION_KEY")
        if not integration_id or not integration_key:
            raise ValueError("Paynow credentials not set. Please set PAYNOW_INTEGRATION_ID and PAYNOW_INTEGRATION_KEY.")

        self.paynow = Paynow(
            integration_id,
            integration_key,
            return_url or os.getenv("PAYNOW_RETURN_URL", ""),
            result_url or os.getenv("PAYNOW_RESULT_URL", ""),
        )

    def initiate_payment(self, request: DeliveryRequest, email: str) -> Dict[str, Any]:
        """
        Create a new payment in Paynow for the request's stored total_amount.
        """
        if request.state is not LifecycleState.PAYMENT_PENDING or request.total_amount is None:
            raise InvalidTransitionError(
                f"Request {request.id} is {request.state.value}, not awaiting payment",
                {"request_id": f"request is {request.state.value}"},
            )

        reference = new_payment_reference()
        payment = self.paynow.create_payment(reference, email)

        # one line item for the whole total (bid + service fee)
        payment.add(f"Delivery {request.id}", float(request.total_amount))

        try:
            response = self.paynow.send(payment)
        except Exception as e:
            logger.error(f"Paynow Exception: {e}")
            raise ExternalServiceError(f"Payment gateway unreachable: {e}") from e

        if not response.success:
            error = getattr(response, "error", None) or "Paynow error"
            logger.warning(f"Paynow rejected payment {reference} for request {request.id}: {error}")
            return {"success": False, "reference": reference, "error": error}

        return {
            "success": True,
            "reference": reference,
            "amount": request.total_amount,
            "poll_url": response.poll_url,
            "redirect_url": response.redirect_url,
            "instructions": getattr(response, "instructions", None),
        }

    def poll(self, request_id: str, poll_url: str) -> Dict[str, Any]:
        """
        Check the status of a transaction and confirm the payment if it is paid.
        """
        try:
            status = self.paynow.check_transaction_status(poll_url)
        except Exception as e:
            logger.error(f"Paynow Exception: {e}")
            raise ExternalServiceError(f"Payment gateway unreachable: {e}") from e
        return self._apply_status(request_id, status)

    def handle_status_update(self, request_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Result URL callback. Duplicate callbacks are absorbed by confirm_payment.
        """
        try:
            status = self.paynow.process_status_update(dict(data))
        except Exception as e:
            logger.error(f"Paynow status update rejected: {e}")
            raise ExternalServiceError(f"Invalid payment status update: {e}") from e
        return self._apply_status(request_id, status)

    def _apply_status(self, request_id: str, status) -> Dict[str, Any]:
        reference = getattr(status, "reference", None)
        if not getattr(status, "paid", False):
            # user abort / still pending: no lifecycle transition
            logger.info(f"Payment {reference} for request {request_id} not paid: {getattr(status, 'status', None)}")
            return {"success": True, "paid": False, "status": getattr(status, "status", None)}

        if self.lifecycle is None:
            raise RuntimeError("PaynowService needs a lifecycle to confirm payments")

        amount = getattr(status, "amount", None)
        record = self.lifecycle.confirm_payment(request_id, reference, amount=amount)
        return {"success": True, "paid": True, "reference": reference, "state": record.state.value}
