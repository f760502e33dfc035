# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Workflow

WHY: Confirming an order is the moment raw material is committed to
production. Stock, usage history and the work order must move together.

LIFECYCLE:
    draft --confirm--> confirm     check stock, deduct it, record usage,
                                   open (or restore) the work order,
                                   then notify low stock
    confirm --draft--> draft       give the stock back, drop usage rows,
                                   trash the work order
    delete                         same as leaving confirm, then trash the order

An update of a confirmed order that stays confirmed reverts the previous
usage and applies it again, so item changes are reflected in stock.

The low-stock notification runs after the commit. It is best effort: any
failure there is logged and never fails the order update.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from ..extensions import db
from ..models import (
    Order,
    OrderItem,
    Product,
    RawMaterial,
    RawMaterialUsage,
    WorkOrder,
)
from ..models.orders import ORDER_STATUS_CONFIRM, ORDER_STATUS_DRAFT, ORDER_STATUSES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    is_valid_email,
    validate_payload,
)
from . import audit_service, notification_service, numbering_service
from .audit_service import AuditContext, SYSTEM_CONTEXT
from .concurrency import lock_for_update, run_with_retry
from .setup_service import paginate
from backoffice.time_utils import utcnow


ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "email", "phone", "address", "delivery_address",
        "finishing", "thickness", "status",
    },
    required_on_create={"name", "email"},
    choices={"status": ORDER_STATUSES},
    aliases={"deliveryAddress": "delivery_address"},
)


class InsufficientMaterialError(ConflictError):
    """Confirmation rejected; data carries the per-material shortage list."""

    def __init__(self, insufficient: list[dict]):
        super().__init__(
            "Raw material not available.",
            {"insufficient_materials": insufficient},
            status_code=422,
        )
        self.insufficient = insufficient


# =============================================================================
# Validation
# =============================================================================

def _validate_order(payload: dict | None, *, partial: bool) -> dict:
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_POLICY, partial=partial)
    if "email" in patch and not is_valid_email(patch["email"]):
        raise ValidationError("Validation error.", {"email": "must be a valid email address"})
    return patch


def _validate_items(payload: dict | None) -> list[dict] | None:
    """
    Items from "items" or "orderItems": [{productId, quantity}, ...].

    Returns None when the payload carries no item list (keep current items).
    """
    payload = payload or {}
    raw = payload.get("items", payload.get("orderItems"))
    if raw is None:
        return None
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Validation error.", {"items": "must be a non-empty list"})

    items: list[dict] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        key = f"items.{index}"
        if not isinstance(item, dict):
            raise ValidationError("Validation error.", {key: "must be an object"})

        product_id = item.get("productId", item.get("product_id"))
        quantity = item.get("quantity")

        if not isinstance(product_id, str) or audit_service.find(Product, product_id) is None:
            raise ValidationError("Validation error.", {f"{key}.productId": "does not exist"})
        if product_id in seen:
            raise ValidationError("Validation error.", {f"{key}.productId": "is listed more than once"})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Validation error.", {f"{key}.quantity": "must be an integer of at least 1"})

        seen.add(product_id)
        items.append({"product_id": product_id, "quantity": quantity})
    return items


def _work_order_description(payload: dict | None) -> str | None:
    payload = payload or {}
    value = payload.get("work_order_description")
    if value is None:
        value = payload.get("workOrderDescription")
    return value


# =============================================================================
# Items and raw material
# =============================================================================

def sync_items(order: Order, items: list[dict]) -> None:
    """
    Replace the order's item set.

    Lines whose product is still listed keep their id (quantity updated);
    other lines are deleted; new products get new lines.
    """
    wanted = {item["product_id"]: item["quantity"] for item in items}

    for line in list(order.items):
        if line.product_id not in wanted:
            order.items.remove(line)
            continue
        line.quantity = wanted.pop(line.product_id)

    for product_id, quantity in wanted.items():
        order.items.append(OrderItem(product_id=product_id, quantity=quantity))

    db.session.flush()


def required_materials(order: Order) -> dict[str, float]:
    """raw_material_id -> total quantity needed (ingredient quantity x line quantity)."""
    required: dict[str, float] = {}
    for line in order.items:
        product = line.product
        for ingredient in (product.ingredients if product else []):
            material_id = ingredient.get("rawMaterialId")
            if not material_id:
                continue
            needed = float(ingredient.get("quantity") or 0) * line.quantity
            required[material_id] = required.get(material_id, 0.0) + needed
    return required


def _load_materials(material_ids) -> dict[str, RawMaterial]:
    if not material_ids:
        return {}
    query = audit_service.active(RawMaterial).filter(RawMaterial.id.in_(list(material_ids)))
    return {m.id: m for m in lock_for_update(query).all()}


def check_availability(order: Order) -> list[dict]:
    """Shortage list; empty when every raw material is available."""
    required = required_materials(order)
    materials = _load_materials(required.keys())

    insufficient = []
    for material_id, needed in required.items():
        material = materials.get(material_id)
        if material is None:
            insufficient.append({
                "rawMaterialId": material_id,
                "rawMaterialName": "Unknown",
                "required": needed,
                "available": 0,
                "shortage": needed,
            })
            continue
        if material.stock < needed:
            insufficient.append({
                "rawMaterialId": material_id,
                "rawMaterialName": material.name,
                "required": needed,
                "available": material.stock,
                "shortage": needed - material.stock,
            })
    return insufficient


def apply_usage(order: Order) -> list[str]:
    """
    Deduct stock (never below zero) and record one usage row per
    (line, ingredient). Returns the raw material ids used, in first-use order.
    """
    materials = _load_materials(required_materials(order).keys())
    used: list[str] = []

    for line in order.items:
        product = line.product
        for ingredient in (product.ingredients if product else []):
            material = materials.get(ingredient.get("rawMaterialId"))
            if material is None:
                continue
            quantity_used = float(ingredient.get("quantity") or 0) * line.quantity
            material.set_stock(max(0.0, material.stock - quantity_used))

            db.session.add(RawMaterialUsage(
                order_id=order.id,
                order_item_id=line.id,
                product_id=line.product_id,
                raw_material_id=material.id,
                quantity_used=quantity_used,
            ))
            if material.id not in used:
                used.append(material.id)
    return used


def revert_usage(order: Order) -> int:
    """Give consumed stock back and delete the usage rows. Returns rows reverted."""
    usages = db.session.query(RawMaterialUsage).filter_by(order_id=order.id).all()
    for usage in usages:
        material = db.session.get(RawMaterial, usage.raw_material_id)
        if material is not None:
            material.set_stock(material.stock + float(usage.quantity_used))
        db.session.delete(usage)
    db.session.flush()
    return len(usages)


def usage_for_order(order_id: str) -> list[RawMaterialUsage]:
    return (
        db.session.query(RawMaterialUsage)
        .filter_by(order_id=order_id)
        .order_by(RawMaterialUsage.created_at.asc())
        .all()
    )


# =============================================================================
# Work order link
# =============================================================================

def work_order_for(order: Order, *, include_trashed: bool = False) -> WorkOrder | None:
    query = audit_service.with_trashed(WorkOrder) if include_trashed else audit_service.active(WorkOrder)
    return (
        query.filter(WorkOrder.order_id == order.id)
        .order_by(WorkOrder.created_at.asc(), WorkOrder.id.asc())
        .first()
    )


def open_work_order(order: Order, description: str | None, ctx: AuditContext) -> WorkOrder:
    """Restore the order's work order (number kept) or create one in pending."""
    existing = work_order_for(order, include_trashed=True)
    if existing is not None:
        if existing.is_trashed:
            audit_service.restore(existing, ctx)
        if description is not None:
            existing.description = description
        if not existing.status:
            existing.status = "pending"
        audit_service.stamp_updated(existing, ctx)
        return existing

    work_order = WorkOrder(
        order_id=order.id,
        number=numbering_service.next_work_order_number(),
        description=description,
        status="pending",
    )
    audit_service.stamp_created(work_order, ctx)
    return work_order


def close_work_order(order: Order, ctx: AuditContext) -> WorkOrder | None:
    work_order = work_order_for(order)
    if work_order is not None:
        audit_service.soft_delete(work_order, ctx)
    return work_order


# =============================================================================
# CRUD
# =============================================================================

def order_payload(order: Order) -> dict:
    payload = order.to_dict()
    work_order = work_order_for(order)
    payload["work_order"] = work_order.to_dict() if work_order else None
    return payload


def list_orders(status: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = audit_service.active(Order)
    if status:
        query = query.filter(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.asc())
    return paginate(query, page, per_page)


def create_order(payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Order:
    """New orders are always drafts, whatever status the client sends."""
    patch = _validate_order(payload, partial=False)
    patch.pop("status", None)
    items = _validate_items(payload)

    order = Order(status=ORDER_STATUS_DRAFT, **patch)
    audit_service.stamp_created(order, ctx)
    db.session.flush()
    if items:
        sync_items(order, items)

    db.session.commit()
    return order


def update_order(order: Order, payload: dict, ctx: AuditContext = SYSTEM_CONTEXT) -> Order:
    """
    Patch the header fields, replace items and move between draft and confirm.

    Raises ConflictError (no items) or InsufficientMaterialError; nothing is
    written in that case. Commits.
    """
    order_id = order.id
    patch = _validate_order(payload, partial=True)
    items = _validate_items(payload)
    description = _work_order_description(payload)

    def _unit():
        current = audit_service.get_or_raise(Order, order_id, label="Order")
        original_status = current.status
        target_status = patch.get("status", original_status)

        if original_status == ORDER_STATUS_CONFIRM:
            revert_usage(current)

        for key, value in patch.items():
            if key != "status":
                setattr(current, key, value)

        if items is not None:
            sync_items(current, items)

        used: list[str] = []
        if target_status == ORDER_STATUS_CONFIRM:
            if not current.items:
                raise ConflictError("Cannot confirm order without order items.", status_code=422)
            insufficient = check_availability(current)
            if insufficient:
                raise InsufficientMaterialError(insufficient)

            used = apply_usage(current)
            open_work_order(current, description, ctx)
            if original_status != ORDER_STATUS_CONFIRM or current.confirmed_at is None:
                current.confirmed_at = utcnow()
        elif original_status == ORDER_STATUS_CONFIRM:
            close_work_order(current, ctx)
            current.confirmed_at = None

        current.status = target_status
        audit_service.stamp_updated(current, ctx)
        db.session.commit()
        return current, used

    try:
        updated, used = run_with_retry(_unit, retry_on=(OperationalError, IntegrityError))
    except ConflictError:
        db.session.rollback()
        raise

    if used:
        notify_after_confirm(used)
    return updated


def notify_after_confirm(material_ids: list[str]):
    """Run the low-stock notifier for the consumed materials; never raises."""
    try:
        return notification_service.notify_low_stock(material_ids=material_ids)
    except Exception:
        current_app.logger.exception("Low stock notification failed for materials %s", material_ids)
        return None


def _trash_order(order: Order, ctx: AuditContext) -> None:
    revert_usage(order)
    close_work_order(order, ctx)
    audit_service.soft_delete(order, ctx)


def delete_order(order: Order, ctx: AuditContext = SYSTEM_CONTEXT) -> Order:
    """Return stock, trash the work order, trash the order. Commits."""
    _trash_order(order, ctx)
    db.session.commit()
    return order


def mass_delete_orders(ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> dict:
    deleted = 0
    not_found: list[str] = []
    for order_id in ids:
        order = audit_service.find(Order, order_id)
        if order is None:
            not_found.append(order_id)
            continue
        _trash_order(order, ctx)
        deleted += 1
    db.session.commit()
    return {"deleted_count": deleted, "not_found": not_found}
