# subscriptions/services/base.py
"""
Shared response builders for subscription services.

Every service method returns:
    {"ok": bool, "reason": str, "code": str, "data": {...}}
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger('subscriptions.services')

# Largest value a DecimalField(max_digits=10, decimal_places=2) can hold
MAX_AMOUNT = Decimal('99999999.99')


def as_bool(value) -> bool:
    """Truthiness for JSON booleans and form strings ('false' is False)."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


class BaseService:

    audit_tag = 'SUBSCRIPTION_AUDIT'

    @staticmethod
    def _to_decimal(value, default=None) -> Optional[Decimal]:
        """Parse a money value; returns default for empty input, None if invalid."""
        if value is None or value == '':
            return default
        try:
            amount = Decimal(str(value))
            if not amount.is_finite():
                return None
            amount = amount.quantize(Decimal('0.01'))
        except (InvalidOperation, ValueError, TypeError):
            return None
        if abs(amount) > MAX_AMOUNT:
            return None
        return amount

    # =========================================================================
    # RESPONSE BUILDERS
    # =========================================================================

    @classmethod
    def _success(cls, reason: str, data: Optional[dict] = None) -> dict:
        return {"ok": True, "reason": reason, "code": "OK", "data": data or {}}

    @classmethod
    def _fail(cls, reason: str, code: str = "ERROR", data: Optional[dict] = None) -> dict:
        return {"ok": False, "reason": reason, "code": code, "data": data or {}}

    @classmethod
    def _audit_log(cls, user, action: str, metadata: dict):
        """Log subscription actions for audit trail"""
        user_id = user.id if user is not None else None
        logger.info(f"[{cls.audit_tag}] {action} | user={user_id} | {metadata}")
