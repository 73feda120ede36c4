"""
Advertising backfill window tests (three-state rule)
"""
from datetime import date, timedelta

from marketplace_audit.models import BackfillStatus
from marketplace_audit.services.backfill_planner import BackfillPlanner

from conftest import FIXED_NOW


def _status(db_session, customer):
    return db_session.query(BackfillStatus).filter(BackfillStatus.customer_id == customer.id).first()


def test_first_call_backfills_and_records_completion(db_session, clock, customer_factory):
    customer = customer_factory()
    planner = BackfillPlanner(db_session, clock=clock)

    window = planner.plan_window(customer.id)

    assert window.mode == "backfill"
    assert window.date_to == date(2025, 3, 12)
    assert window.date_from == date(2025, 3, 12) - timedelta(days=180)
    status = _status(db_session, customer)
    assert status.backfill_completed is True
    assert status.oldest_date_fetched == window.date_from
    assert status.completed_at == FIXED_NOW


def test_second_call_is_incremental(db_session, clock, customer_factory):
    customer = customer_factory()
    planner = BackfillPlanner(db_session, clock=clock)
    planner.plan_window(customer.id)

    window = planner.plan_window(customer.id)

    assert window.mode == "incremental"
    assert (window.date_to - window.date_from).days == 7


def test_deferred_recording_keeps_the_backfill(db_session, clock, customer_factory):
    customer = customer_factory()
    planner = BackfillPlanner(db_session, clock=clock)

    window = planner.plan_window(customer.id, record=False)
    assert _status(db_session, customer) is None
    assert planner.plan_window(customer.id, record=False).mode == "backfill"

    planner.record_backfill(customer.id, window)
    assert _status(db_session, customer).backfill_completed is True
    assert planner.plan_window(customer.id, record=False).mode == "incremental"


def test_incremental_window_is_not_recorded(db_session, clock, customer_factory):
    customer = customer_factory()
    planner = BackfillPlanner(db_session, clock=clock)
    planner.plan_window(customer.id)

    planner.record_backfill(customer.id, planner.plan_window(customer.id))

    assert _status(db_session, customer).oldest_date_fetched == date(2024, 9, 13)


def test_incomplete_backfill_is_requested_again(db_session, clock, customer_factory):
    customer = customer_factory()
    db_session.add(BackfillStatus(customer_id=customer.id, backfill_completed=False))
    db_session.commit()
    planner = BackfillPlanner(db_session, clock=clock)

    window = planner.plan_window(customer.id)
    assert window.mode == "backfill"
    assert (window.date_to - window.date_from).days == 180

    planner.record_backfill(customer.id, window)
    assert _status(db_session, customer).backfill_completed is True
    assert db_session.query(BackfillStatus).filter(BackfillStatus.customer_id == customer.id).count() == 1


def test_customers_are_planned_independently(db_session, clock, customer_factory):
    first = customer_factory("First")
    second = customer_factory("Second")
    planner = BackfillPlanner(db_session, clock=clock)
    planner.plan_window(first.id)

    assert planner.plan_window(second.id).mode == "backfill"
    assert planner.plan_window(first.id).mode == "incremental"


def test_window_serialises_to_iso_dates(db_session, clock, customer_factory):
    customer = customer_factory()
    window = BackfillPlanner(db_session, clock=clock, incremental_days=7).plan_window(customer.id)
    assert window.to_dict() == {"from": "2024-09-13", "to": "2025-03-12", "mode": "backfill"}
