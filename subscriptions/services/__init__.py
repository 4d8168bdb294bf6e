# subscriptions/services/__init__.py
from subscriptions.services.plan_service import PlanService
from subscriptions.services.invoice_service import InvoiceService
from subscriptions.services.subscription_service import SubscriptionService
from subscriptions.services.approval_service import ApprovalService
from subscriptions.services.expiry_service import ExpiryService

__all__ = [
    'PlanService',
    'InvoiceService',
    'SubscriptionService',
    'ApprovalService',
    'ExpiryService',
]
