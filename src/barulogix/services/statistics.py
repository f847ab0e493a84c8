"""Package statistics aggregation.

Pure functions over an already fetched, owner-scoped package collection.
Results depend only on the input packages and the ``now`` passed in, so
callers control the clock (tests pin it, services pass the request time).

Rounding is half-up everywhere: a 3.5 day average reports 4.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Protocol

from barulogix.db.models.base import PackageStatus, ShipmentType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_GRACE_DAYS = 3

_ZERO = Decimal("0")


class PackageLike(Protocol):
    """Attributes the aggregator reads from a package."""

    shipment_type: ShipmentType
    status: int
    value: Decimal | None
    due_date: date
    client_delivery_date: date | None


@dataclass(frozen=True, slots=True)
class StatusBreakdown:
    """Per-status counts for one slice of packages."""

    total: int = 0
    pending: int = 0
    delivered: int = 0
    returned: int = 0


@dataclass(frozen=True, slots=True)
class PackageStats:
    """Aggregate metrics for a package collection.

    Attributes:
        total: Number of packages.
        pending: Packages not delivered yet.
        delivered: Packages delivered.
        returned: Packages returned to the warehouse.
        shein_temu: Packages of the Shein/Temu type.
        dropi: Packages of the Dropi type.
        total_value_dropi: Sum of Dropi values (missing values count as 0).
        pending_value_dropi: Sum of values of pending Dropi packages.
        delivered_value_dropi: Sum of values of delivered Dropi packages.
        delivery_rate: Delivered share of total as a rounded percentage.
        average_delay_days: Rounded mean lateness of delivered packages.
        by_type: Status breakdown keyed by shipment type value.
    """

    total: int = 0
    pending: int = 0
    delivered: int = 0
    returned: int = 0
    shein_temu: int = 0
    dropi: int = 0
    total_value_dropi: Decimal = _ZERO
    pending_value_dropi: Decimal = _ZERO
    delivered_value_dropi: Decimal = _ZERO
    delivery_rate: int = 0
    average_delay_days: int = 0
    by_type: dict[str, StatusBreakdown] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses and exports."""
        return {
            "total": self.total,
            "pending": self.pending,
            "delivered": self.delivered,
            "returned": self.returned,
            "shein_temu": self.shein_temu,
            "dropi": self.dropi,
            "total_value_dropi": float(self.total_value_dropi),
            "pending_value_dropi": float(self.pending_value_dropi),
            "delivered_value_dropi": float(self.delivered_value_dropi),
            "delivery_rate": self.delivery_rate,
            "average_delay_days": self.average_delay_days,
            "by_type": {
                key: {
                    "total": b.total,
                    "pending": b.pending,
                    "delivered": b.delivered,
                    "returned": b.returned,
                }
                for key, b in self.by_type.items()
            },
        }


@dataclass(frozen=True, slots=True)
class DelayedPackage:
    """A pending package past the grace threshold."""

    package: Any
    days_late: int


def round_half_up(value: Decimal | int | float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_date(now: datetime | date) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def days_late(due_date: date, now: datetime | date) -> int:
    """Whole days elapsed since the due date, never negative."""
    return max(0, (_as_date(now) - due_date).days)


def delivery_delay(package: PackageLike) -> int | None:
    """Whole days a delivered package arrived after its due date.

    Returns:
        The non-negative delay, or None when the package is not delivered
        or has no recorded client delivery date.
    """
    if package.status != PackageStatus.DELIVERED or package.client_delivery_date is None:
        return None
    return max(0, (package.client_delivery_date - package.due_date).days)


def _mean_rounded(values: Sequence[int]) -> int:
    if not values:
        return 0
    return round_half_up(Decimal(sum(values)) / Decimal(len(values)))


def compute_stats(packages: Iterable[PackageLike]) -> PackageStats:
    """Aggregate counts, COD sums, delivery rate and average delay.

    Args:
        packages: Package collection, already scoped and filtered.

    Returns:
        PackageStats for the collection; all zeros when it is empty.
    """
    counts = {status: 0 for status in PackageStatus}
    type_counts: dict[ShipmentType, dict[PackageStatus, int]] = {
        shipment_type: {status: 0 for status in PackageStatus} for shipment_type in ShipmentType
    }
    total_value = pending_value = delivered_value = _ZERO
    delays: list[int] = []
    total = 0

    for package in packages:
        total += 1
        status = PackageStatus(package.status)
        counts[status] += 1
        type_counts[package.shipment_type][status] += 1

        if package.shipment_type == ShipmentType.DROPI:
            value = package.value or _ZERO
            total_value += value
            if status == PackageStatus.PENDING:
                pending_value += value
            elif status == PackageStatus.DELIVERED:
                delivered_value += value

        delay = delivery_delay(package)
        if delay is not None:
            delays.append(delay)

    delivered = counts[PackageStatus.DELIVERED]
    delivery_rate = round_half_up(Decimal(delivered * 100) / Decimal(total)) if total else 0

    by_type = {
        shipment_type.value: StatusBreakdown(
            total=sum(per_status.values()),
            pending=per_status[PackageStatus.PENDING],
            delivered=per_status[PackageStatus.DELIVERED],
            returned=per_status[PackageStatus.RETURNED],
        )
        for shipment_type, per_status in type_counts.items()
    }

    return PackageStats(
        total=total,
        pending=counts[PackageStatus.PENDING],
        delivered=delivered,
        returned=counts[PackageStatus.RETURNED],
        shein_temu=by_type[ShipmentType.SHEIN_TEMU.value].total,
        dropi=by_type[ShipmentType.DROPI.value].total,
        total_value_dropi=total_value,
        pending_value_dropi=pending_value,
        delivered_value_dropi=delivered_value,
        delivery_rate=delivery_rate,
        average_delay_days=_mean_rounded(delays),
        by_type=by_type,
    )


def delayed_packages(
    packages: Iterable[PackageLike],
    now: datetime | date,
    grace_days: int = DEFAULT_GRACE_DAYS,
) -> list[DelayedPackage]:
    """Pending packages more than ``grace_days`` past due, most late first."""
    delayed = [
        DelayedPackage(package=package, days_late=late)
        for package in packages
        if package.status == PackageStatus.PENDING
        and (late := days_late(package.due_date, now)) > grace_days
    ]
    delayed.sort(key=lambda item: item.days_late, reverse=True)
    return delayed


def average_pending_delay(packages: Iterable[PackageLike], now: datetime | date) -> int:
    """Rounded mean lateness over all pending packages (0 if none)."""
    return _mean_rounded(
        [
            days_late(package.due_date, now)
            for package in packages
            if package.status == PackageStatus.PENDING
        ]
    )
