# Overview: Service-layer operations for delivery orders; encapsulates business logic and database work.

"""
Delivery Orders

A delivery order ships (part of) an order. Its items are a snapshot: the
product name and unit are copied at creation, so later product edits do not
rewrite delivery paperwork.

STATUS TIMESTAMPS:
    pending     shipped_at and delivered_at cleared
    shipped     shipped_at set, delivered_at cleared
    delivered   delivered_at set, shipped_at back-filled when missing
    cancelled   timestamps kept

When a delivery is tied to a work order, requested quantities may not exceed
what is still undelivered for that work order; once everything is delivered
the work order is completed, and deleting a delivery reopens it.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from ..extensions import db
from ..models import DeliveryOrder, DeliveryOrderItem, Order, WorkOrder
from ..models.production import DELIVERY_ORDER_STATUSES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
)
from . import audit_service, numbering_service
from .audit_service import AuditContext, SYSTEM_CONTEXT
from .concurrency import run_with_retry
from .setup_service import paginate
from backoffice.time_utils import parse_iso_datetime, utcnow


DELIVERY_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={"order_id", "work_order_id", "description", "planned_delivery_date"},
    required_on_create={"order_id"},
    aliases={
        "orderId": "order_id",
        "workOrderId": "work_order_id",
        "plannedDeliveryDate": "planned_delivery_date",
    },
)

DELIVERY_ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "planned_delivery_date"},
    aliases={"plannedDeliveryDate": "planned_delivery_date"},
)


class DeliveryQuantityError(ConflictError):
    """Requested quantities exceed what is left to deliver."""

    def __init__(self, problems: list[dict]):
        super().__init__("Validation error.", {"errors": problems}, status_code=422)
        self.problems = problems


# =============================================================================
# Quantities
# =============================================================================

def delivered_quantities(work_order_id: str, *, exclude_id: str | None = None) -> dict[str, int]:
    """product_id -> quantity already on live delivery orders for the work order."""
    rows = (
        db.session.query(DeliveryOrderItem.product_id, db.func.sum(DeliveryOrderItem.quantity))
        .join(DeliveryOrder, DeliveryOrder.id == DeliveryOrderItem.delivery_order_id)
        .filter(
            DeliveryOrder.work_order_id == work_order_id,
            DeliveryOrder.deleted_at.is_(None),
        )
    )
    if exclude_id:
        rows = rows.filter(DeliveryOrder.id != exclude_id)
    return {product_id: int(total or 0) for product_id, total in rows.group_by(DeliveryOrderItem.product_id).all()}


def delivery_summary(work_order: WorkOrder) -> list[dict]:
    delivered = delivered_quantities(work_order.id)
    summary = []
    for line in work_order.order.items:
        product = line.product
        done = delivered.get(line.product_id, 0)
        summary.append({
            "product_id": line.product_id,
            "product_name": product.name if product else "Unknown",
            "ordered_quantity": line.quantity,
            "delivered_quantity": done,
            "remaining_quantity": line.quantity - done,
            "unit": (product.data or {}).get("unit") if product else None,
        })
    return summary


def _all_delivered(work_order: WorkOrder) -> bool:
    delivered = delivered_quantities(work_order.id)
    return all(delivered.get(line.product_id, 0) >= line.quantity for line in work_order.order.items)


def _sync_work_order_completion(work_order: WorkOrder | None, ctx: AuditContext) -> None:
    if work_order is None or work_order.is_trashed or not work_order.order:
        return
    db.session.flush()
    complete = _all_delivered(work_order)
    if complete and work_order.status != "completed":
        work_order.status = "completed"
        audit_service.stamp_updated(work_order, ctx)
    elif not complete and work_order.status == "completed":
        work_order.status = "in_progress"
        audit_service.stamp_updated(work_order, ctx)


# =============================================================================
# Items
# =============================================================================

def _snapshot_items(order: Order, requested: list[dict] | None) -> list[DeliveryOrderItem]:
    """
    Delivery lines from explicit items, or the whole order when none given.
    Explicit items must be lines of the order.
    """
    lines = {line.product_id: line for line in order.items}

    if requested is None:
        picks = [(line, line.quantity) for line in order.items]
    else:
        picks = []
        for index, item in enumerate(requested):
            if not isinstance(item, dict):
                raise ValidationError("Validation error.", {f"items.{index}": "must be an object"})
            product_id = item.get("productId", item.get("product_id"))
            quantity = item.get("quantity")
            line = lines.get(product_id)
            if line is None:
                raise ValidationError("Validation error.", {f"items.{index}.productId": "is not part of the order"})
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise ValidationError("Validation error.", {f"items.{index}.quantity": "must be an integer of at least 1"})
            picks.append((line, quantity))

    if not picks:
        raise ValidationError("Validation error.", {"items": "the order has no items to deliver"})

    items = []
    for line, quantity in picks:
        product = line.product
        items.append(DeliveryOrderItem(
            product_id=line.product_id,
            product_name=product.name if product and product.name else "Unknown",
            quantity=quantity,
            unit=((product.data or {}).get("unit") if product else None) or "pcs",
        ))
    return items


def _check_remaining(work_order: WorkOrder, items: list[DeliveryOrderItem]) -> None:
    delivered = delivered_quantities(work_order.id)
    ordered = {line.product_id: line.quantity for line in work_order.order.items}

    problems = []
    for item in items:
        already = delivered.get(item.product_id, 0)
        remaining = ordered.get(item.product_id, 0) - already
        if item.quantity > remaining:
            problems.append({
                "productId": item.product_id,
                "productName": item.product_name,
                "error": (
                    f"Cannot deliver {item.quantity} units. Only {remaining} remaining "
                    f"({already} already delivered)"
                ),
                "requested": item.quantity,
                "remaining": remaining,
                "alreadyDelivered": already,
            })
    if problems:
        raise DeliveryQuantityError(problems)


# =============================================================================
# CRUD
# =============================================================================

def list_delivery_orders(status: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(DeliveryOrder)
    if status:
        query = query.filter(DeliveryOrder.status == status)
    query = query.order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.asc())
    return paginate(query, page, per_page)


def delivery_orders_for_order(order_id: str) -> list[DeliveryOrder]:
    audit_service.get_or_raise(Order, order_id, label="Order")
    return (
        audit_service.active(DeliveryOrder)
        .filter(DeliveryOrder.order_id == order_id)
        .order_by(DeliveryOrder.created_at.desc())
        .all()
    )


def create_delivery_order(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> DeliveryOrder:
    """
    Create a pending delivery order with a fresh NNN/SJ/<MONTH>/YYYY number.

    Retried as a whole when the number allocation loses a race. Commits.
    """
    patch = validate_payload(model=DeliveryOrder, payload=payload, policy=DELIVERY_ORDER_POLICY, partial=False)
    requested = (payload or {}).get("items")
    if requested is not None and (not isinstance(requested, list) or not requested):
        raise ValidationError("Validation error.", {"items": "must be a non-empty list"})

    def _unit() -> DeliveryOrder:
        order = audit_service.find(Order, patch["order_id"])
        if order is None:
            raise ValidationError("Validation error.", {"orderId": "does not exist"})

        work_order = None
        if patch.get("work_order_id"):
            work_order = audit_service.find(WorkOrder, patch["work_order_id"])
            if work_order is None or work_order.order_id != order.id:
                raise ValidationError("Validation error.", {"workOrderId": "does not belong to the order"})

        items = _snapshot_items(order, requested)
        if work_order is not None:
            _check_remaining(work_order, items)

        delivery = DeliveryOrder(
            number=numbering_service.next_delivery_order_number(),
            status="pending",
            **patch,
        )
        delivery.items.extend(items)
        audit_service.stamp_created(delivery, ctx)
        _sync_work_order_completion(work_order, ctx)
        db.session.commit()
        return delivery

    try:
        delivery = run_with_retry(_unit, retry_on=(OperationalError, IntegrityError))
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise

    current_app.logger.info("Delivery order created: id=%s number=%s", delivery.id, delivery.number)
    return delivery


def update_delivery_order(delivery: DeliveryOrder, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> DeliveryOrder:
    patch = validate_payload(model=DeliveryOrder, payload=payload, policy=DELIVERY_ORDER_UPDATE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(delivery, key, value)

    status = (payload or {}).get("status")
    if status is not None:
        apply_status(delivery, status)

    audit_service.stamp_updated(delivery, ctx)
    db.session.commit()
    return delivery


def apply_status(delivery: DeliveryOrder, status: str | None, *, at: datetime | None = None) -> None:
    """Set status and the timestamps that go with it (no commit)."""
    if status not in DELIVERY_ORDER_STATUSES:
        raise ValidationError(
            "Validation error.",
            {"status": f"must be one of: {', '.join(sorted(DELIVERY_ORDER_STATUSES))}"},
        )

    now = at or utcnow()
    if status == "pending":
        delivery.shipped_at = None
        delivery.delivered_at = None
    elif status == "shipped":
        delivery.shipped_at = now
        delivery.delivered_at = None
    elif status == "delivered":
        delivery.delivered_at = now
        if delivery.shipped_at is None:
            delivery.shipped_at = now
    delivery.status = status


def set_delivery_status(delivery: DeliveryOrder, status: str | None, ctx: AuditContext = SYSTEM_CONTEXT) -> DeliveryOrder:
    apply_status(delivery, status)
    audit_service.stamp_updated(delivery, ctx)
    db.session.commit()
    return delivery


def mark_delivered(delivery: DeliveryOrder, delivered_at: str | None = None, ctx: AuditContext = SYSTEM_CONTEXT) -> DeliveryOrder:
    at = None
    if delivered_at:
        try:
            at = parse_iso_datetime(delivered_at)
        except ValueError:
            at = None
        if at is None:
            raise ValidationError("Validation error.", {"deliveredAt": "must be an ISO-8601 datetime"})
    apply_status(delivery, "delivered", at=at)
    audit_service.stamp_updated(delivery, ctx)
    db.session.commit()
    return delivery


def delete_delivery_order(delivery: DeliveryOrder, ctx: AuditContext = SYSTEM_CONTEXT) -> DeliveryOrder:
    """Only pending deliveries can be deleted. Reopens a completed work order."""
    if delivery.status != "pending":
        raise ConflictError("Only pending delivery orders can be deleted.", status_code=422)
    audit_service.soft_delete(delivery, ctx)
    _sync_work_order_completion(delivery.work_order, ctx)
    db.session.commit()
    return delivery


def mass_delete_delivery_orders(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    deleted = 0
    not_found: list[str] = []
    skipped: list[str] = []
    for delivery_id in ids:
        delivery = audit_service.find(DeliveryOrder, delivery_id)
        if delivery is None:
            not_found.append(delivery_id)
            continue
        if delivery.status != "pending":
            skipped.append(delivery_id)
            continue
        audit_service.soft_delete(delivery, ctx)
        _sync_work_order_completion(delivery.work_order, ctx)
        deleted += 1
    db.session.commit()
    return {"deleted_count": deleted, "not_found": not_found, "skipped": skipped}
