"""
Document numbering.

Verifies:
- Work order numbers are WO-YYYYMMDD-NNNN, sequential per day
- Delivery order numbers are NNN/SJ/<roman month>/YYYY, sequential per month
- A new period's counter is seeded from numbers already issued,
  trashed documents included
"""

from datetime import datetime

import pytest

from backoffice.models import DeliveryOrder, DocumentSequence, Order, WorkOrder
from backoffice.services import audit_service, numbering_service
from backoffice.services.numbering_service import DocumentSequenceError
from backoffice.time_utils import roman_month


def _order(session):
    order = Order(name="Acme", email="buyer@acme.com")
    session.add(order)
    session.commit()
    return order


class TestWorkOrderNumbers:

    def test_sequential_within_a_day(self, db_session):
        now = datetime(2026, 10, 19, 9, 0)
        first = numbering_service.next_work_order_number(now)
        second = numbering_service.next_work_order_number(now)

        assert first == "WO-20261019-0001"
        assert second == "WO-20261019-0002"

    def test_new_day_restarts(self, db_session):
        numbering_service.next_work_order_number(datetime(2026, 10, 19))
        assert numbering_service.next_work_order_number(datetime(2026, 10, 20)) == "WO-20261020-0001"

    def test_seeded_from_existing_including_trashed(self, db_session):
        order = _order(db_session)
        live = WorkOrder(order_id=order.id, number="WO-20261019-0001")
        trashed = WorkOrder(order_id=order.id, number="WO-20261019-0002")
        other_day = WorkOrder(order_id=order.id, number="WO-20261018-0001")
        db_session.add_all([live, trashed, other_day])
        db_session.commit()
        audit_service.soft_delete(trashed)
        db_session.commit()

        assert numbering_service.next_work_order_number(datetime(2026, 10, 19)) == "WO-20261019-0003"

    def test_counter_row_per_period(self, db_session):
        numbering_service.next_work_order_number(datetime(2026, 10, 19))
        numbering_service.next_work_order_number(datetime(2026, 10, 19))
        db_session.commit()

        row = db_session.query(DocumentSequence).filter_by(document_type="WORK_ORDER", period="20261019").one()
        assert row.next_number == 3


class TestDeliveryOrderNumbers:

    def test_format_uses_roman_month(self, db_session):
        assert numbering_service.next_delivery_order_number(datetime(2026, 10, 5)) == "001/SJ/X/2026"
        assert numbering_service.next_delivery_order_number(datetime(2026, 10, 28)) == "002/SJ/X/2026"

    def test_new_month_restarts(self, db_session):
        numbering_service.next_delivery_order_number(datetime(2026, 10, 5))
        assert numbering_service.next_delivery_order_number(datetime(2026, 11, 1)) == "001/SJ/XI/2026"

    def test_seeded_from_existing(self, db_session):
        order = _order(db_session)
        db_session.add_all([
            DeliveryOrder(order_id=order.id, number="001/SJ/IV/2026"),
            DeliveryOrder(order_id=order.id, number="002/SJ/IV/2026"),
            DeliveryOrder(order_id=order.id, number="001/SJ/IV/2025"),
        ])
        db_session.commit()

        assert numbering_service.next_delivery_order_number(datetime(2026, 4, 30)) == "003/SJ/IV/2026"


class TestAllocate:

    def test_requires_type_and_period(self, db_session):
        with pytest.raises(DocumentSequenceError):
            numbering_service.allocate("", "2026-10")
        with pytest.raises(DocumentSequenceError):
            numbering_service.allocate("WORK_ORDER", "")

    def test_seed_only_used_once(self, db_session):
        calls = []

        def seed():
            calls.append(1)
            return 41

        assert numbering_service.allocate("TEST", "p1", seed=seed) == 42
        assert numbering_service.allocate("TEST", "p1", seed=seed) == 43
        assert len(calls) == 1


@pytest.mark.parametrize("month,expected", [(1, "I"), (4, "IV"), (9, "IX"), (12, "XII")])
def test_roman_month(month, expected):
    assert roman_month(month) == expected


def test_roman_month_out_of_range():
    with pytest.raises(ValueError):
        roman_month(13)
