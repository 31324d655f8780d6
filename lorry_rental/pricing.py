"""Booking cost calculation and status lifecycle rules."""
import math
from dataclasses import dataclass

HOURLY = "hourly"
DAILY = "daily"
RENTAL_TYPES = (HOURLY, DAILY)

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
BOOKING_STATUSES = (PENDING, CONFIRMED, CANCELLED)

_STRICT_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: set(),
    CANCELLED: set(),
}


class PricingError(ValueError):
    """Raised when a booking cost cannot be computed from the given inputs."""


class StatusTransitionError(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change booking status from {current} to {target}")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class PricingSettings:
    tax_percentage: float
    maintenance_fee: float

    @classmethod
    def from_record(cls, record) -> "PricingSettings":
        return cls(
            tax_percentage=float(record.tax_percentage),
            maintenance_fee=float(record.maintenance_fee),
        )


@dataclass(frozen=True)
class CostBreakdown:
    base: float
    tax: float
    maintenance_fee: float
    total: float


def calculate_booking_cost(
        price_hour: float,
        price_day: float,
        rental_type: str,
        duration: float,
        settings: PricingSettings
) -> CostBreakdown:
    """Compute the charge for a booking.

    The hourly rate applies to ``hourly`` rentals and the daily rate to
    ``daily`` ones; tax is a percentage of the base and the maintenance
    fee is added once per booking.
    """
    if rental_type not in RENTAL_TYPES:
        raise PricingError(f"Unknown rental type: {rental_type}")
    if duration is None or duration <= 0:
        raise PricingError("Duration must be greater than zero")

    rate = price_hour if rental_type == HOURLY else price_day
    base = duration * rate
    tax = base * (settings.tax_percentage / 100)
    total = base + tax + settings.maintenance_fee
    if not math.isfinite(total):
        raise PricingError("Booking cost is out of range")

    return CostBreakdown(
        base=base,
        tax=tax,
        maintenance_fee=settings.maintenance_fee,
        total=total,
    )


def check_status_transition(current: str, target: str, strict: bool = False) -> None:
    """Raise StatusTransitionError unless ``current -> target`` is allowed.

    Any of the known statuses may follow any other unless ``strict`` is set,
    in which case only a pending booking can move, and only to confirmed or
    cancelled.
    """
    if target not in BOOKING_STATUSES:
        raise StatusTransitionError(current, target)
    if not strict:
        return
    if target not in _STRICT_TRANSITIONS.get(current, set()):
        raise StatusTransitionError(current, target)
