"""
Unit tests for repair_tracker/common/business_rules.py

Tests follow-up scheduling and status bookkeeping shared by both backends:
- Next update date per status and payment terms
- Cost routing (final vs estimated)
- Status history append and trimming
- New order preparation
- Locally computed dashboard counters
"""

from datetime import date, timedelta

import pytest

from repair_tracker.common.archive import ArchiveStatus
from repair_tracker.common.business_rules import (
    MAX_STATUS_HISTORY,
    apply_status_update,
    calculate_next_update_date,
    compute_dashboard_counts,
    cost_field_for_status,
    is_due_today,
    is_on_track,
    prepare_new_order,
)
from repair_tracker.common.types import RepairOrder, StatusHistoryEntry, StatusUpdate

TODAY = date(2024, 2, 1)
BASE = date(2024, 1, 1)


# ===== FIXTURES =====


@pytest.fixture
def order():
    return RepairOrder(order_number="RO-100", terms="NET 30", current_status="WAITING QUOTE")


class TestCalculateNextUpdateDate:
    """Tests for calculate_next_update_date."""

    @pytest.mark.parametrize(
        "status,days",
        [
            ("TO SEND", 3),
            ("WAITING QUOTE", 14),
            ("APPROVED", 7),
            ("BEING REPAIRED", 10),
            ("CURRENTLY BEING SHIPPED", 5),
            ("RECEIVED", 3),
            ("SHIPPING", 3),
        ],
    )
    def test_fixed_status_delays(self, status, days):
        assert calculate_next_update_date(status, BASE) == BASE + timedelta(days=days)

    def test_status_is_case_insensitive(self):
        assert calculate_next_update_date(" approved ", BASE) == date(2024, 1, 8)

    def test_unknown_status_defaults_to_seven_days(self):
        assert calculate_next_update_date("ON HOLD", BASE) == date(2024, 1, 8)

    @pytest.mark.parametrize("status", ["PAYMENT SENT", "BER"])
    def test_closed_statuses_need_no_follow_up(self, status):
        assert calculate_next_update_date(status, BASE, "NET 30") is None

    @pytest.mark.parametrize(
        "terms,expected",
        [
            ("NET 30", date(2024, 1, 31)),
            ("net45", date(2024, 2, 15)),
            ("WIRE TRANSFER", date(2024, 1, 4)),
            ("XFER", date(2024, 1, 4)),
            ("SPECIAL ARRANGEMENT", date(2024, 1, 31)),
            ("COD", None),
            ("Prepaid", None),
            ("CREDIT CARD", None),
            (None, None),
            ("   ", None),
        ],
    )
    def test_paid_follows_payment_terms(self, terms, expected):
        """PAID follow-up depends on the payment terms."""
        assert calculate_next_update_date("PAID", BASE, terms) == expected

    def test_paid_arrow_variant(self):
        assert calculate_next_update_date("PAID >>>>", BASE, "NET 60") == date(2024, 3, 1)


class TestDateHelpers:
    """Tests for is_due_today / is_on_track."""

    def test_due_today(self):
        assert is_due_today(TODAY, TODAY)
        assert not is_due_today(TODAY + timedelta(days=1), TODAY)
        assert not is_due_today(None, TODAY)

    def test_on_track_needs_more_than_three_days(self):
        assert is_on_track(TODAY + timedelta(days=4), TODAY)
        assert not is_on_track(TODAY + timedelta(days=3), TODAY)
        assert not is_on_track(TODAY - timedelta(days=1), TODAY)

    def test_nothing_scheduled_is_on_track(self):
        assert is_on_track(None, TODAY)


class TestCostRouting:
    """Tests for cost_field_for_status."""

    @pytest.mark.parametrize("status", ["PAID", "PAID >>>>", "SHIPPING", "currently shipping"])
    def test_final_cost_statuses(self, status):
        assert cost_field_for_status(status) == "final_cost"

    @pytest.mark.parametrize("status", ["WAITING QUOTE", "APPROVED", "BEING REPAIRED"])
    def test_estimated_cost_statuses(self, status):
        assert cost_field_for_status(status) == "estimated_cost"


class TestApplyStatusUpdate:
    """Tests for apply_status_update."""

    def test_full_update(self, order):
        """Should set status, dates, cost, delivery, tracking, notes and history."""
        update = StatusUpdate(
            status="PAID",
            notes="Check #1042",
            cost=900.0,
            delivery_date=date(2024, 2, 10),
            tracking_number="1Z999",
            user="jdoe",
        )

        changes = apply_status_update(order, update, TODAY)

        assert changes["current_status"] == "PAID"
        assert changes["current_status_date"] == TODAY
        assert changes["last_date_updated"] == TODAY
        assert changes["next_date_to_update"] == date(2024, 3, 2)
        assert changes["final_cost"] == 900.0
        assert "estimated_cost" not in changes
        assert changes["estimated_delivery_date"] == date(2024, 2, 10)
        assert changes["tracking_number"] == "1Z999"
        assert changes["notes"] == "Check #1042"

        [entry] = changes["status_history"]
        assert entry.status == "PAID"
        assert entry.status_date == TODAY
        assert entry.user == "jdoe"
        assert entry.cost == 900.0

    def test_minimal_update_leaves_optional_fields_alone(self, order):
        changes = apply_status_update(order, StatusUpdate(status="APPROVED"), TODAY)

        assert changes["next_date_to_update"] == date(2024, 2, 8)
        for field in ("final_cost", "estimated_cost", "tracking_number", "notes", "estimated_delivery_date"):
            assert field not in changes

    def test_quote_cost_goes_to_estimate(self, order):
        changes = apply_status_update(order, StatusUpdate(status="WAITING QUOTE", cost=1500), TODAY)

        assert changes["estimated_cost"] == 1500
        assert "final_cost" not in changes

    def test_history_is_trimmed_to_most_recent(self, order):
        """Only the latest MAX_STATUS_HISTORY entries are kept."""
        old = [
            StatusHistoryEntry(status=f"STEP {i}", status_date=BASE + timedelta(days=i))
            for i in range(MAX_STATUS_HISTORY)
        ]
        order = order.with_changes({"status_history": old})

        changes = apply_status_update(order, StatusUpdate(status="SHIPPING"), TODAY)

        history = changes["status_history"]
        assert len(history) == MAX_STATUS_HISTORY
        assert history[0].status == "STEP 1"
        assert history[-1].status == "SHIPPING"

    def test_changes_apply_cleanly(self, order):
        """The returned dict is accepted by RepairOrder.with_changes."""
        changes = apply_status_update(order, StatusUpdate(status="BEING REPAIRED", notes="In work"), TODAY)

        updated = order.with_changes(changes)

        assert updated.current_status == "BEING REPAIRED"
        assert updated.notes == "In work"
        assert len(updated.status_history) == 1


class TestPrepareNewOrder:
    """Tests for prepare_new_order."""

    def test_fills_in_dates(self):
        prepared = prepare_new_order(RepairOrder(order_number="RO-1"), TODAY)

        assert prepared.date_made == TODAY
        assert prepared.current_status_date == TODAY
        assert prepared.last_date_updated == TODAY
        assert prepared.next_date_to_update == date(2024, 2, 4)  # TO SEND: 3 days

    def test_keeps_supplied_dates(self):
        order = RepairOrder(
            order_number="RO-1",
            date_made=BASE,
            current_status="WAITING QUOTE",
            current_status_date=BASE,
        )

        prepared = prepare_new_order(order, TODAY)

        assert prepared.date_made == BASE
        assert prepared.next_date_to_update == date(2024, 1, 15)

    def test_rejects_archived_orders(self):
        with pytest.raises(ValueError, match="ACTIVE"):
            prepare_new_order(RepairOrder(order_number="RO-1", archive_status=ArchiveStatus.PAID), TODAY)


class TestDashboardCounts:
    """Tests for compute_dashboard_counts."""

    @pytest.fixture
    def orders(self):
        return [
            RepairOrder(order_number="A", current_status="WAITING QUOTE",
                        next_date_to_update=TODAY - timedelta(days=40), estimated_cost=100),
            RepairOrder(order_number="B", current_status="APPROVED",
                        next_date_to_update=TODAY, estimated_cost=200, final_cost=250),
            RepairOrder(order_number="C", current_status="BEING REPAIRED",
                        next_date_to_update=TODAY + timedelta(days=10), terms="NET 30"),
            RepairOrder(order_number="D", current_status="PAID", final_cost=50),
            RepairOrder(order_number="E", current_status="BER",
                        next_date_to_update=TODAY + timedelta(days=2)),
        ]

    def test_counts(self, orders):
        counts = compute_dashboard_counts(orders, TODAY)

        assert counts["total_active"] == 3
        assert counts["overdue"] == 1
        assert counts["overdue_30_plus"] == 1
        assert counts["waiting_quote"] == 1
        assert counts["approved"] == 1
        assert counts["being_repaired"] == 1
        assert counts["shipping"] == 0
        assert counts["due_today"] == 1
        assert counts["on_track"] == 2
        assert counts["approved_paid"] == 1
        assert counts["approved_net"] == 1
        assert counts["ber"] == 1
        assert counts["rai"] == counts["cancel"] == counts["scrapped"] == 0

    def test_values_prefer_final_cost(self, orders):
        counts = compute_dashboard_counts(orders, TODAY)

        assert counts["total_value"] == 400
        assert counts["total_estimated_value"] == 300
        assert counts["total_final_value"] == 300

    def test_empty(self):
        counts = compute_dashboard_counts([], TODAY)

        assert counts["total_active"] == 0
        assert counts["total_value"] == 0
