"""Tests for package statistics.

Tests cover:
- Status and shipment-type counts
- Dropi value sums
- Delivery rate and average delay rounding
- Delayed package selection and pending delay averages
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.services.statistics import (
    average_pending_delay,
    compute_stats,
    days_late,
    delayed_packages,
    round_half_up,
)
from tests.factories import create_conductor, create_package

TODAY = date(2026, 3, 15)


@pytest.fixture
def conductor():
    return create_conductor()


class TestRoundHalfUp:
    """Tests for half-up rounding."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(Decimal("3.5"), 4), (Decimal("2.5"), 3), (Decimal("2.49"), 2), (0, 0), (66.666, 67)],
    )
    def test_rounds_halves_up(self, value, expected):
        assert round_half_up(value) == expected


class TestComputeStats:
    """Tests for compute_stats()."""

    def test_empty_collection_is_all_zero(self):
        """No packages gives zero counts and a zero delivery rate."""
        stats = compute_stats([])

        assert stats.total == 0
        assert stats.delivery_rate == 0
        assert stats.average_delay_days == 0
        assert stats.total_value_dropi == Decimal("0")

    def test_status_counts_add_up_to_total(self, conductor):
        packages = [
            create_package(conductor, status=PackageStatus.PENDING),
            create_package(conductor, status=PackageStatus.DELIVERED),
            create_package(conductor, status=PackageStatus.DELIVERED),
            create_package(conductor, status=PackageStatus.RETURNED),
        ]

        stats = compute_stats(packages)

        assert stats.total == 4
        assert (stats.pending, stats.delivered, stats.returned) == (1, 2, 1)
        assert stats.pending + stats.delivered + stats.returned == stats.total
        assert stats.delivery_rate == 50

    def test_delivery_rate_rounds_half_up(self, conductor):
        """1 of 8 delivered is 12.5%, reported as 13."""
        packages = [create_package(conductor, status=PackageStatus.DELIVERED)]
        packages += [create_package(conductor) for _ in range(7)]

        assert compute_stats(packages).delivery_rate == 13

    def test_dropi_values_are_summed_per_status(self, conductor):
        packages = [
            create_package(
                conductor,
                shipment_type=ShipmentType.DROPI,
                value=Decimal("50000"),
            ),
            create_package(
                conductor,
                shipment_type=ShipmentType.DROPI,
                status=PackageStatus.DELIVERED,
                value=Decimal("20000.50"),
            ),
            create_package(
                conductor,
                shipment_type=ShipmentType.DROPI,
                status=PackageStatus.RETURNED,
                value=Decimal("10000"),
            ),
            create_package(conductor, shipment_type=ShipmentType.SHEIN_TEMU),
        ]

        stats = compute_stats(packages)

        assert stats.dropi == 3
        assert stats.shein_temu == 1
        assert stats.total_value_dropi == Decimal("80000.50")
        assert stats.pending_value_dropi == Decimal("50000")
        assert stats.delivered_value_dropi == Decimal("20000.50")

    def test_by_type_breakdown(self, conductor):
        packages = [
            create_package(conductor, shipment_type=ShipmentType.DROPI, value=Decimal("1")),
            create_package(conductor, status=PackageStatus.RETURNED),
        ]

        by_type = compute_stats(packages).by_type

        assert by_type["Dropi"].total == 1
        assert by_type["Dropi"].pending == 1
        assert by_type["Shein/Temu"].returned == 1

    def test_average_delay_of_delivered_packages(self, conductor):
        """Delays of 2 and 5 days average to 3.5, reported as 4."""
        due = TODAY - timedelta(days=10)
        packages = [
            create_package(
                conductor,
                status=PackageStatus.DELIVERED,
                due_date=due,
                client_delivery_date=due + timedelta(days=2),
            ),
            create_package(
                conductor,
                status=PackageStatus.DELIVERED,
                due_date=due,
                client_delivery_date=due + timedelta(days=5),
            ),
            # No delivery date recorded: ignored
            create_package(conductor, status=PackageStatus.DELIVERED, due_date=due),
        ]

        assert compute_stats(packages).average_delay_days == 4

    def test_early_delivery_counts_as_zero_delay(self, conductor):
        package = create_package(
            conductor,
            status=PackageStatus.DELIVERED,
            due_date=TODAY,
            client_delivery_date=TODAY - timedelta(days=3),
        )

        assert compute_stats([package]).average_delay_days == 0

    def test_to_dict_uses_floats_for_values(self, conductor):
        package = create_package(
            conductor, shipment_type=ShipmentType.DROPI, value=Decimal("50000")
        )

        data = compute_stats([package]).to_dict()

        assert data["total_value_dropi"] == 50000.0
        assert data["by_type"]["Dropi"] == {
            "total": 1,
            "pending": 1,
            "delivered": 0,
            "returned": 0,
        }


class TestDelays:
    """Tests for lateness helpers."""

    def test_days_late_never_negative(self):
        assert days_late(TODAY + timedelta(days=2), TODAY) == 0
        assert days_late(TODAY - timedelta(days=6), TODAY) == 6

    def test_delayed_packages_respects_grace_and_order(self, conductor):
        four = create_package(conductor, due_date=TODAY - timedelta(days=4))
        ten = create_package(conductor, due_date=TODAY - timedelta(days=10))
        three = create_package(conductor, due_date=TODAY - timedelta(days=3))
        delivered = create_package(
            conductor, status=PackageStatus.DELIVERED, due_date=TODAY - timedelta(days=20)
        )

        result = delayed_packages([four, ten, three, delivered], TODAY)

        assert [item.package for item in result] == [ten, four]
        assert [item.days_late for item in result] == [10, 4]

    def test_custom_grace_days(self, conductor):
        package = create_package(conductor, due_date=TODAY - timedelta(days=2))

        assert delayed_packages([package], TODAY, grace_days=1)[0].days_late == 2
        assert delayed_packages([package], TODAY, grace_days=2) == []

    def test_average_pending_delay(self, conductor):
        packages = [
            create_package(conductor, due_date=TODAY - timedelta(days=2)),
            create_package(conductor, due_date=TODAY - timedelta(days=5)),
            create_package(
                conductor, status=PackageStatus.DELIVERED, due_date=TODAY - timedelta(days=30)
            ),
        ]

        assert average_pending_delay(packages, TODAY) == 4
        assert average_pending_delay([], TODAY) == 0
