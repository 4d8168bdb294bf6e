# subscriptions/services/plan_service.py
"""
Plan catalog: listing for users, CRUD for reviewers.
"""

import logging
from decimal import Decimal
from django.conf import settings

from subscriptions.services.base import BaseService, as_bool

logger = logging.getLogger(__name__)


class PlanService(BaseService):
    """
    Usage:
        result = PlanService.list_active()
        result = PlanService.create_plan(reviewer, {'name': '1 Month', 'duration_days': 30, 'price': 499})
        result = PlanService.delete_plan(reviewer, plan_id)
    """

    EDITABLE_FIELDS = ('name', 'description', 'duration_days', 'price', 'currency',
                       'features', 'display_order', 'is_active')
    # Subscriptions snapshot these, so they are frozen once a plan is referenced
    LOCKED_WHEN_REFERENCED = ('name', 'duration_days', 'currency')

    @classmethod
    def list_active(cls) -> dict:
        from subscriptions.models import SubscriptionPlan

        plans = [p.to_dict() for p in SubscriptionPlan.objects.active()]
        return cls._success(f"{len(plans)} plan(s).", data={"plans": plans})

    @classmethod
    def list_all(cls) -> dict:
        """Reviewer listing, inactive plans included."""
        from subscriptions.models import SubscriptionPlan

        plans = [p.to_dict() for p in SubscriptionPlan.objects.all().order_by('display_order', 'name')]
        return cls._success(f"{len(plans)} plan(s).", data={"plans": plans})

    @classmethod
    def get_plan(cls, plan_id):
        """Returns the plan or None (unknown id or malformed id)."""
        from subscriptions.models import SubscriptionPlan
        from django.core.exceptions import ValidationError

        try:
            return SubscriptionPlan.objects.get(pk=plan_id)
        except (SubscriptionPlan.DoesNotExist, ValidationError, ValueError):
            return None

    @classmethod
    def create_plan(cls, reviewer, payload: dict) -> dict:
        from subscriptions.models import SubscriptionPlan

        cleaned, error = cls._clean(payload, partial=False)
        if error:
            return error

        cleaned.setdefault('currency', settings.DEFAULT_CURRENCY)
        plan = SubscriptionPlan.objects.create(**cleaned)

        cls._audit_log(reviewer, "plan_created", {"plan_id": str(plan.id), "name": plan.name})
        return cls._success("Plan created.", data={"plan": plan.to_dict()})

    @classmethod
    def update_plan(cls, reviewer, plan_id, payload: dict) -> dict:
        plan = cls.get_plan(plan_id)
        if not plan:
            return cls._fail("Plan not found.", code="PLAN_NOT_FOUND")

        cleaned, error = cls._clean(payload, partial=True)
        if error:
            return error

        locked = [f for f in cls.LOCKED_WHEN_REFERENCED
                  if f in cleaned and cleaned[f] != getattr(plan, f)]
        if locked and plan.is_referenced():
            return cls._fail(
                f"Cannot change {', '.join(locked)} of a plan that has subscriptions.",
                code="PLAN_IN_USE"
            )

        for field, value in cleaned.items():
            setattr(plan, field, value)
        plan.save()

        cls._audit_log(reviewer, "plan_updated", {"plan_id": str(plan.id), "fields": sorted(cleaned)})
        return cls._success("Plan updated.", data={"plan": plan.to_dict()})

    @classmethod
    def delete_plan(cls, reviewer, plan_id) -> dict:
        plan = cls.get_plan(plan_id)
        if not plan:
            return cls._fail("Plan not found.", code="PLAN_NOT_FOUND")

        if plan.has_active_subscriptions():
            return cls._fail(
                "Cannot delete plan with active subscriptions.",
                code="PLAN_IN_USE"
            )

        plan_name = plan.name
        plan.delete()

        cls._audit_log(reviewer, "plan_deleted", {"plan_id": str(plan_id), "name": plan_name})
        return cls._success("Plan deleted.", data={"plan_id": str(plan_id)})

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @classmethod
    def _clean(cls, payload: dict, partial: bool):
        """Returns (cleaned_fields, None) or (None, fail_result)."""
        cleaned = {k: payload[k] for k in cls.EDITABLE_FIELDS if k in payload}

        if not partial:
            missing = [f for f in ('name', 'duration_days', 'price') if f not in cleaned]
            if missing:
                return None, cls._fail(
                    f"Missing required field(s): {', '.join(missing)}.",
                    code="INVALID_REQUEST"
                )

        if 'name' in cleaned:
            cleaned['name'] = str(cleaned['name']).strip()
            if not cleaned['name']:
                return None, cls._fail("Plan name is required.", code="INVALID_REQUEST")

        if 'duration_days' in cleaned:
            try:
                cleaned['duration_days'] = int(cleaned['duration_days'])
            except (TypeError, ValueError):
                return None, cls._fail("Duration must be a whole number of days.", code="INVALID_REQUEST")
            if cleaned['duration_days'] < 1:
                return None, cls._fail("Duration must be at least 1 day.", code="INVALID_REQUEST")

        if 'price' in cleaned:
            price = cls._to_decimal(cleaned['price'])
            if price is None or price < Decimal('0'):
                return None, cls._fail("Price must be a non-negative amount.", code="INVALID_AMOUNT")
            cleaned['price'] = price

        if 'display_order' in cleaned:
            try:
                cleaned['display_order'] = max(0, int(cleaned['display_order']))
            except (TypeError, ValueError):
                return None, cls._fail("Display order must be a number.", code="INVALID_REQUEST")

        if 'is_active' in cleaned:
            cleaned['is_active'] = as_bool(cleaned['is_active'])

        if 'features' in cleaned and not isinstance(cleaned['features'], list):
            return None, cls._fail("Features must be a list.", code="INVALID_REQUEST")

        if 'currency' in cleaned:
            cleaned['currency'] = str(cleaned['currency']).upper()[:3]

        return cleaned, None
