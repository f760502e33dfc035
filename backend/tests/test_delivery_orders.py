"""
Delivery orders.

Verifies:
- Items are snapshotted from the order; numbers follow NNN/SJ/<month>/YYYY
- Deliveries tied to a work order cannot exceed what is left to deliver
- The work order completes when everything is delivered and reopens when
  a delivery is removed
- Status changes set and clear the shipped/delivered timestamps
- Only pending deliveries can be deleted
"""

import re

import pytest

from conftest import make_material, make_product

from backoffice.models import WorkOrder
from backoffice.services import order_service


DELIVERIES = "/api/transactions/delivery-orders"


@pytest.fixture
def confirmed(db_session, mailer):
    """A confirmed order for 10 chairs and 5 tables, with its work order."""
    wood = make_material(db_session, "Wood", 10000)
    chair = make_product(db_session, "Chair", [(wood, 2)])
    table = make_product(db_session, "Table", [(wood, 8)])
    order = order_service.create_order({
        "name": "Acme Furniture",
        "email": "buyer@acme.com",
        "items": [
            {"productId": chair.id, "quantity": 10},
            {"productId": table.id, "quantity": 5},
        ],
    })
    order = order_service.update_order(order, {"status": "confirm"})
    work_order = order_service.work_order_for(order)
    return {"order": order, "work_order": work_order, "chair": chair, "table": table}


def _create(client, headers, **body):
    return client.post(DELIVERIES, headers=headers, json=body)


class TestCreate:

    def test_whole_order_snapshot(self, client, admin_headers, confirmed):
        response = _create(client, admin_headers, orderId=confirmed["order"].id, plannedDeliveryDate="2026-11-02")

        assert response.status_code == 201, response.get_json()
        delivery = response.get_json()["data"]["deliveryOrder"]
        assert re.match(r"^\d{3}/SJ/[IVX]+/\d{4}$", delivery["number"])
        assert delivery["status"] == "pending"
        assert delivery["planned_delivery_date"] == "2026-11-02"
        assert {(i["product_name"], i["quantity"]) for i in delivery["items"]} == {("Chair", 10), ("Table", 5)}

    def test_numbers_are_sequential(self, client, admin_headers, confirmed):
        first = _create(client, admin_headers, orderId=confirmed["order"].id).get_json()["data"]["deliveryOrder"]
        second = _create(client, admin_headers, orderId=confirmed["order"].id).get_json()["data"]["deliveryOrder"]

        assert int(second["number"][:3]) == int(first["number"][:3]) + 1
        assert second["number"][3:] == first["number"][3:]

    def test_snapshot_survives_product_rename(self, client, admin_headers, confirmed, db_session):
        delivery = _create(client, admin_headers, orderId=confirmed["order"].id).get_json()["data"]["deliveryOrder"]

        chair = confirmed["chair"]
        chair.data = {**chair.data, "name": "Armchair"}
        db_session.commit()

        shown = client.get(f"{DELIVERIES}/edit/{delivery['id']}", headers=admin_headers).get_json()
        names = {i["product_name"] for i in shown["data"]["deliveryOrder"]["items"]}
        assert names == {"Chair", "Table"}

    def test_item_must_belong_to_order(self, client, admin_headers, confirmed, db_session):
        stray = make_product(db_session, "Stool", [(make_material(db_session, "Steel", 10), 1)])
        response = _create(
            client, admin_headers,
            orderId=confirmed["order"].id,
            items=[{"productId": stray.id, "quantity": 1}],
        )
        assert response.status_code == 422
        assert "items.0.productId" in response.get_json()["data"]

    def test_item_must_be_an_object(self, client, admin_headers, confirmed):
        response = _create(client, admin_headers, orderId=confirmed["order"].id, items=["x"])
        assert response.status_code == 422
        assert response.get_json()["data"] == {"items.0": "must be an object"}

    def test_unknown_order(self, client, admin_headers, db_session):
        response = _create(client, admin_headers, orderId="missing")
        assert response.status_code == 422


class TestRemainingQuantities:

    def test_partial_deliveries_complete_work_order(self, client, admin_headers, confirmed, db_session):
        order_id = confirmed["order"].id
        work_order_id = confirmed["work_order"].id

        first = _create(
            client, admin_headers, orderId=order_id, workOrderId=work_order_id,
            items=[{"productId": confirmed["chair"].id, "quantity": 4}],
        )
        assert first.status_code == 201
        assert db_session.get(WorkOrder, work_order_id).status == "pending"

        second = _create(
            client, admin_headers, orderId=order_id, workOrderId=work_order_id,
            items=[
                {"productId": confirmed["chair"].id, "quantity": 6},
                {"productId": confirmed["table"].id, "quantity": 5},
            ],
        )
        assert second.status_code == 201
        assert db_session.get(WorkOrder, work_order_id).status == "completed"

        summary = client.get(
            f"/api/transactions/work-orders/delivery-summary/{work_order_id}", headers=admin_headers
        ).get_json()["data"]
        remaining = {line["product_name"]: line["remaining_quantity"] for line in summary["summary"]}
        assert remaining == {"Chair": 0, "Table": 0}

    def test_over_delivery_rejected(self, client, admin_headers, confirmed):
        order_id = confirmed["order"].id
        work_order_id = confirmed["work_order"].id
        _create(
            client, admin_headers, orderId=order_id, workOrderId=work_order_id,
            items=[{"productId": confirmed["chair"].id, "quantity": 8}],
        )

        response = _create(
            client, admin_headers, orderId=order_id, workOrderId=work_order_id,
            items=[{"productId": confirmed["chair"].id, "quantity": 3}],
        )

        assert response.status_code == 422
        problem = response.get_json()["data"]["errors"][0]
        assert problem["remaining"] == 2
        assert problem["alreadyDelivered"] == 8
        assert problem["requested"] == 3

    def test_deleting_delivery_reopens_work_order(self, client, admin_headers, confirmed, db_session):
        work_order_id = confirmed["work_order"].id
        delivery = _create(
            client, admin_headers, orderId=confirmed["order"].id, workOrderId=work_order_id,
        ).get_json()["data"]["deliveryOrder"]
        assert db_session.get(WorkOrder, work_order_id).status == "completed"

        response = client.delete(f"{DELIVERIES}/{delivery['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert db_session.get(WorkOrder, work_order_id).status == "in_progress"


class TestStatus:

    def _delivery(self, client, headers, confirmed):
        return _create(client, headers, orderId=confirmed["order"].id).get_json()["data"]["deliveryOrder"]

    def test_status_timestamps(self, client, admin_headers, confirmed):
        delivery = self._delivery(client, admin_headers, confirmed)
        url = f"{DELIVERIES}/status/{delivery['id']}"

        shipped = client.put(url, headers=admin_headers, json={"status": "shipped"}).get_json()["data"]["deliveryOrder"]
        assert shipped["shipped_at"] is not None
        assert shipped["delivered_at"] is None

        delivered = client.put(url, headers=admin_headers, json={"status": "delivered"}).get_json()["data"]["deliveryOrder"]
        assert delivered["delivered_at"] is not None
        assert delivered["shipped_at"] == shipped["shipped_at"]

        pending = client.put(url, headers=admin_headers, json={"status": "pending"}).get_json()["data"]["deliveryOrder"]
        assert pending["shipped_at"] is None
        assert pending["delivered_at"] is None

    def test_delivered_backfills_shipped(self, client, admin_headers, confirmed):
        delivery = self._delivery(client, admin_headers, confirmed)

        response = client.put(
            f"{DELIVERIES}/delivered/{delivery['id']}",
            headers=admin_headers,
            json={"deliveredAt": "2026-10-01T08:30:00Z"},
        )

        data = response.get_json()["data"]["deliveryOrder"]
        assert data["status"] == "delivered"
        assert data["delivered_at"] == "2026-10-01T08:30:00Z"
        assert data["shipped_at"] == "2026-10-01T08:30:00Z"

    def test_invalid_status(self, client, admin_headers, confirmed):
        delivery = self._delivery(client, admin_headers, confirmed)
        response = client.put(f"{DELIVERIES}/status/{delivery['id']}", headers=admin_headers, json={"status": "lost"})
        assert response.status_code == 422

    def test_only_pending_can_be_deleted(self, client, admin_headers, confirmed):
        delivery = self._delivery(client, admin_headers, confirmed)
        client.put(f"{DELIVERIES}/status/{delivery['id']}", headers=admin_headers, json={"status": "shipped"})

        response = client.delete(f"{DELIVERIES}/{delivery['id']}", headers=admin_headers)

        assert response.status_code == 422
        assert response.get_json()["message"] == "Only pending delivery orders can be deleted."
