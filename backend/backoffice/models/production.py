from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, new_id
from backoffice.time_utils import to_utc_z, utcnow


WORK_ORDER_STATUSES = {"pending", "in_progress", "completed", "cancelled"}
DELIVERY_ORDER_STATUSES = {"pending", "shipped", "delivered", "cancelled"}


class WorkOrder(AuditMixin, db.Model):
    """
    Production instruction opened when an order is confirmed.

    `number` is assigned once at creation (WO-YYYYMMDD-NNNN) and never changes.
    """
    __tablename__ = "work_orders"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    number = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", backref=db.backref("work_orders", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "number": self.number,
            "description": self.description,
            "status": self.status,
            "order_status": self.order.status if self.order else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            **self.audit_dict(),
        }


class FinishedGood(AuditMixin, db.Model):
    """Quantity of a product produced under a work order."""
    __tablename__ = "finished_goods"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    work_order_id = db.Column(db.String(32), db.ForeignKey("work_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    produced_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    work_order = db.relationship("WorkOrder", backref=db.backref("finished_goods", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "work_order_number": self.work_order.number if self.work_order else "",
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else "",
            "quantity": self.quantity,
            "notes": self.notes,
            "produced_at": to_utc_z(self.produced_at),
            **self.audit_dict(),
        }


class DeliveryOrder(AuditMixin, db.Model):
    """
    Shipment of (part of) an order.

    `number` is assigned once at creation (NNN/SJ/<roman month>/<year>).
    """
    __tablename__ = "delivery_orders"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    work_order_id = db.Column(db.String(32), db.ForeignKey("work_orders.id"), nullable=True, index=True)
    number = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    planned_delivery_date = db.Column(db.Date, nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", backref=db.backref("delivery_orders", lazy=True))
    work_order = db.relationship("WorkOrder", backref=db.backref("delivery_orders", lazy=True))
    items = db.relationship(
        "DeliveryOrderItem",
        backref="delivery_order",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "work_order_id": self.work_order_id,
            "number": self.number,
            "description": self.description,
            "status": self.status,
            "planned_delivery_date": self.planned_delivery_date.isoformat() if self.planned_delivery_date else None,
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
            **self.audit_dict(),
        }


class DeliveryOrderItem(db.Model):
    """Delivered line; product name is snapshotted at creation."""
    __tablename__ = "delivery_order_items"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    delivery_order_id = db.Column(db.String(32), db.ForeignKey("delivery_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit,
        }
