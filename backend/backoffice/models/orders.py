from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, new_id
from backoffice.time_utils import to_utc_z, utcnow


ORDER_STATUS_DRAFT = "draft"
ORDER_STATUS_CONFIRM = "confirm"
ORDER_STATUSES = {ORDER_STATUS_DRAFT, ORDER_STATUS_CONFIRM}


class Order(AuditMixin, db.Model):
    """
    Customer order.

    draft -> confirm consumes raw material and opens a work order;
    confirm -> draft gives the material back and trashes the work order.
    """
    __tablename__ = "orders"

    id = db.Column(db.String(32), primary_key=True, default=new_id)

    # Customer contact
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.Text, nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)

    # Production specs
    finishing = db.Column(db.String(255), nullable=True)
    thickness = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_DRAFT, index=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "delivery_address": self.delivery_address,
            "finishing": self.finishing,
            "thickness": self.thickness,
            "status": self.status,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
            **self.audit_dict(),
        }


class OrderItem(db.Model):
    """Order line; removed lines are deleted outright when the item set is replaced."""
    __tablename__ = "order_items"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else "",
            "quantity": self.quantity,
        }


class RawMaterialUsage(db.Model):
    """
    Raw material consumed by a confirmed order line.

    Rows exist only while the order is confirmed; reverting the order gives
    the quantity back to stock and removes them.
    """
    __tablename__ = "raw_material_usage"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    order_item_id = db.Column(db.String(32), db.ForeignKey("order_items.id"), nullable=True, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    raw_material_id = db.Column(db.String(32), db.ForeignKey("raw_materials.id"), nullable=False, index=True)
    quantity_used = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    raw_material = db.relationship("RawMaterial")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_item_id": self.order_item_id,
            "product_id": self.product_id,
            "raw_material_id": self.raw_material_id,
            "raw_material_name": self.raw_material.name if self.raw_material else "Unknown",
            "quantity_used": self.quantity_used,
            "created_at": to_utc_z(self.created_at),
        }
