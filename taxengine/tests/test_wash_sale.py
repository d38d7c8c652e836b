"""
Wash-sale records: window matching, capacity draw-down and event marking.
"""

from datetime import datetime, timezone
from decimal import Decimal

from taxengine.schemas.tax_report import TaxableEvent
from taxengine.services.wash_sale import WashSaleTracker


def _dt(day: str) -> datetime:
    return datetime.fromisoformat(day).replace(tzinfo=timezone.utc)


def _loss_event(tx_id="sell", asset="BTC", loss="-500.00") -> TaxableEvent:
    return TaxableEvent(
        transaction_id=tx_id,
        date=_dt("2024-01-10"),
        date_acquired=_dt("2024-01-01"),
        asset=asset,
        amount=Decimal("1"),
        proceeds=Decimal("500.00"),
        cost_basis=Decimal("500.00") - Decimal(loss),
        gain_loss=Decimal(loss),
        holding_period="short",
        kind="sale",
    )


def test_purchase_within_window_absorbs_loss():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("-500"))

    assert tracker.check_wash_sale("BTC", _dt("2024-01-20")) == Decimal("500")
    assert tracker.records[0].remaining_capacity == 0
    assert tracker.records[0].disallowed_amount == Decimal("500")


def test_window_is_inclusive_at_thirty_days():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("100"))
    assert tracker.check_wash_sale("BTC", _dt("2024-02-09")) == Decimal("100")


def test_purchase_outside_window_is_not_a_wash_sale():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("100"))
    assert tracker.check_wash_sale("BTC", _dt("2024-02-10")) == 0
    assert tracker.records[0].remaining_capacity == Decimal("100")


def test_window_applies_before_the_sale_too():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-03-01"), Decimal("100"))
    assert tracker.check_wash_sale("BTC", _dt("2024-02-15")) == Decimal("100")


def test_other_assets_do_not_match():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("100"))
    assert tracker.check_wash_sale("ETH", _dt("2024-01-11")) == 0


def test_capacity_is_never_reused():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("100"))

    assert tracker.check_wash_sale("BTC", _dt("2024-01-11")) == Decimal("100")
    assert tracker.check_wash_sale("BTC", _dt("2024-01-12")) == 0
    assert tracker.records[0].remaining_capacity == 0


def test_one_purchase_draws_from_several_loss_sales():
    tracker = WashSaleTracker()
    tracker.record_loss("s1", "BTC", _dt("2024-01-05"), Decimal("100"))
    tracker.record_loss("s2", "BTC", _dt("2024-01-15"), Decimal("250"))

    assert tracker.check_wash_sale("btc", _dt("2024-01-20")) == Decimal("350")


def test_zero_loss_opens_no_record():
    tracker = WashSaleTracker()
    assert tracker.record_loss("s", "BTC", _dt("2024-01-05"), Decimal("0")) is None
    assert tracker.records == []


def test_mark_wash_sales_annotates_without_changing_gain_loss():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("-500"))
    tracker.check_wash_sale("BTC", _dt("2024-01-20"))

    washed = _loss_event()
    untouched = _loss_event(tx_id="other")
    total = tracker.mark_wash_sales([washed, untouched])

    assert washed.wash_sale is True
    assert washed.disallowed_loss == Decimal("500.00")
    assert washed.gain_loss == Decimal("-500.00")
    assert untouched.wash_sale is False
    assert total == Decimal("500.00")


def test_unmatched_loss_is_not_marked():
    tracker = WashSaleTracker()
    tracker.record_loss("sell", "BTC", _dt("2024-01-10"), Decimal("-500"))
    event = _loss_event()

    tracker.mark_wash_sales([event])
    assert event.wash_sale is False
    assert event.disallowed_loss == 0
