"""Plan limits, usage accounting and admission decisions."""

import logging
from dataclasses import dataclass, field, replace
from typing import Protocol

from boothos.domain.errors import NotFound, PaymentRequired
from boothos.domain.events import (
    EventRecord,
    SubscriptionRecord,
    UsageCounters,
    UsageSnapshot,
)

_logger = logging.getLogger(__name__)

_ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}


@dataclass(frozen=True)
class PlanLimits:
    """Capabilities and quotas granted by a plan."""

    photo_cap: int | None
    ai_credits: int
    background_removal: bool
    photographer_mode: bool
    watermark: bool
    billing: str = "one_time"


DEFAULT_PLANS: dict[str, PlanLimits] = {
    "free": PlanLimits(25, 0, False, False, True, billing="none"),
    "pro": PlanLimits(300, 5, True, False, False),
    "corporate": PlanLimits(1000, 10, True, True, False),
    "event-basic": PlanLimits(100, 0, True, False, False),
    "event-unlimited": PlanLimits(None, 0, True, False, False),
    "event-ai": PlanLimits(None, 10, True, False, False),
    "photographer-single": PlanLimits(None, 20, True, True, False),
    "photographer-monthly": PlanLimits(
        None, 40, True, True, False, billing="subscription"
    ),
}


@dataclass
class PlanPolicy:
    """Single lookup table mapping plan names to limits."""

    plans: dict[str, PlanLimits] = field(default_factory=lambda: dict(DEFAULT_PLANS))
    fallback: str = "free"

    @classmethod
    def from_overrides(cls, overrides: dict[str, dict[str, object]]) -> "PlanPolicy":
        """Build a policy from defaults patched with per-plan overrides."""
        plans = dict(DEFAULT_PLANS)
        for name, values in overrides.items():
            base = plans.get(name.lower(), DEFAULT_PLANS["free"])
            known = {key: value for key, value in values.items() if hasattr(base, key)}
            plans[name.lower()] = replace(base, **known)
        return cls(plans=plans)

    def limits_for(self, plan: str | None) -> PlanLimits:
        """Return limits for a plan name, case-insensitively."""
        key = (plan or self.fallback).lower()
        limits = self.plans.get(key)
        if limits is None:
            _logger.warning("Unknown plan %s, using %s limits", plan, self.fallback)
            return self.plans[self.fallback]
        return limits


class EventRepository(Protocol):
    """Persistence interface for events and their counters."""

    def get_event(self, event_id: str) -> EventRecord | None:
        """Return an event by id, if present."""

    def get_subscription(self, event_id: str) -> SubscriptionRecord | None:
        """Return the subscription of the business owning an event."""

    def adjust_usage(
        self,
        event_id: str,
        *,
        photos: int = 0,
        ai_credits: int = 0,
        photo_limit: int | None = None,
        ai_limit: int | None = None,
    ) -> UsageCounters | None:
        """Atomically add deltas, flooring at zero.

        Returns None without changing anything when a positive delta would
        push a counter past its limit.
        """


@dataclass
class UsageGate:
    """Answers plan capability questions and applies usage changes."""

    events: EventRepository
    policy: PlanPolicy

    def get_event(self, event_id: str) -> EventRecord:
        """Return an event or raise NotFound."""
        event = self.events.get_event(event_id)
        if event is None:
            raise NotFound("Event not found")
        return event

    def limits(self, event: EventRecord) -> PlanLimits:
        """Return the plan limits for an event."""
        return self.policy.limits_for(event.plan)

    def photo_cap(self, event: EventRecord) -> int | None:
        """Effective photo cap: the event override or the plan default."""
        if event.counters.photo_cap is not None:
            return event.counters.photo_cap
        return self.limits(event).photo_cap

    def ai_credit_cap(self, event: EventRecord) -> int:
        """Effective AI credit allowance."""
        if event.counters.ai_credits is not None:
            return event.counters.ai_credits
        return self.limits(event).ai_credits

    def usage(self, event: EventRecord) -> UsageSnapshot:
        """Derive quotas and remaining headroom for an event."""
        return self._snapshot(event, event.counters)

    def requires_payment(
        self, event: EventRecord, subscription: SubscriptionRecord | None
    ) -> bool:
        """Return True when the event's plan has not been paid for."""
        billing = self.limits(event).billing
        if billing == "none":
            return False
        if billing == "subscription":
            return (
                subscription is None
                or subscription.status not in _ACTIVE_SUBSCRIPTION_STATUSES
            )
        return event.payment_status != "paid"

    def event_requires_payment(self, event: EventRecord) -> bool:
        """Payment check using the stored subscription for the event."""
        return self.requires_payment(event, self.events.get_subscription(event.id))

    def allows_background_removal(self, event: EventRecord) -> bool:
        """Removal needs both the plan capability and the event toggle."""
        return (
            self.limits(event).background_removal
            and event.background_removal_enabled
        )

    def allows_ai_backgrounds(self, event: EventRecord) -> bool:
        """AI backgrounds need a non-zero credit allowance."""
        return self.ai_credit_cap(event) > 0

    def watermark_enabled(self, event: EventRecord) -> bool:
        """Free-tier output carries the branding badge."""
        return self.limits(event).watermark

    def increment_usage(
        self, event_id: str, *, photos: int = 0, ai_credits: int = 0
    ) -> UsageSnapshot:
        """Apply deltas unconditionally (never below zero)."""
        event = self.get_event(event_id)
        counters = self.events.adjust_usage(
            event_id, photos=photos, ai_credits=ai_credits
        )
        if counters is None:
            raise RuntimeError(f"Failed to update usage for event {event_id}")
        return self._snapshot(event, counters)

    def reserve_photos(self, event: EventRecord, count: int) -> UsageSnapshot:
        """Atomically claim ``count`` photo slots or reject the whole batch."""
        counters = self.events.adjust_usage(
            event.id, photos=count, photo_limit=self.photo_cap(event)
        )
        if counters is None:
            remaining = self.usage(self.get_event(event.id)).remaining_photos
            raise PaymentRequired(f"Only {remaining} photos remaining")
        return self._snapshot(event, counters)

    def release_photos(self, event: EventRecord, count: int) -> UsageSnapshot:
        """Return unused photo slots."""
        if count <= 0:
            return self.usage(self.get_event(event.id))
        return self.increment_usage(event.id, photos=-count)

    def reserve_ai_credit(self, event: EventRecord) -> UsageSnapshot:
        """Atomically claim one AI credit."""
        counters = self.events.adjust_usage(
            event.id, ai_credits=1, ai_limit=self.ai_credit_cap(event)
        )
        if counters is None:
            raise PaymentRequired("AI credits exhausted.")
        return self._snapshot(event, counters)

    def refund_ai_credit(self, event: EventRecord) -> UsageSnapshot:
        """Give back a credit claimed for a failed generation."""
        return self.increment_usage(event.id, ai_credits=-1)

    def _snapshot(self, event: EventRecord, counters: UsageCounters) -> UsageSnapshot:
        cap = self.photo_cap(event)
        ai_cap = self.ai_credit_cap(event)
        return UsageSnapshot(
            photo_used=counters.photo_used,
            photo_cap=cap,
            remaining_photos=None if cap is None else max(cap - counters.photo_used, 0),
            ai_credits=ai_cap,
            ai_used=counters.ai_used,
            remaining_ai=max(ai_cap - counters.ai_used, 0),
            watermark=self.watermark_enabled(event),
        )
