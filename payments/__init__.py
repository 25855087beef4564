#FeeCalculator + PaymentSettlement.
#The Paynow gateway adapter lives in payments.paynow_service and is imported
#explicitly, so the core does not need the gateway SDK loaded.

from .fees import SERVICE_FEE, total_amount
from .settlement import new_payment_reference, settle

__all__ = ["SERVICE_FEE", "total_amount", "new_payment_reference", "settle"]
