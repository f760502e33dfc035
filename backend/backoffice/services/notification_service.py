# Overview: Low-stock detection and best-effort email notification.

"""
Low-Stock Notifier

Two entry points share one implementation:
- after an order is confirmed, with the raw materials that order consumed
- on a schedule (CLI), scanning every live raw material

Delivery is best effort. Each recipient is tried independently; a failed
send is logged and reported, never raised, and never stops later sends.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import RawMaterial, User
from . import audit_service, mail_service
from backoffice.time_utils import utcnow


SUBJECT = "Low stock warning: raw materials below minimum"

SEVERITY_CRITICAL = "critical"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class LowStockMaterial:
    id: str
    name: str
    stock: float
    unit: str
    threshold: int
    severity: str

    @property
    def is_critical(self) -> bool:
        return self.severity == SEVERITY_CRITICAL

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stock": self.stock,
            "unit": self.unit,
            "threshold": self.threshold,
            "severity": self.severity,
        }


@dataclass
class NotificationReport:
    notified: bool
    reason: str | None = None
    threshold: int = 0
    materials_checked: int = 0
    materials: list[LowStockMaterial] = field(default_factory=list)
    recipients: list[str] = field(default_factory=list)
    used_fallback: bool = False
    success_count: int = 0
    failed_recipients: list[str] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failed_recipients)

    def to_dict(self) -> dict:
        return {
            "notified": self.notified,
            "reason": self.reason,
            "threshold": self.threshold,
            "materials_checked": self.materials_checked,
            "low_stock_materials": [m.to_dict() for m in self.materials],
            "recipients": list(self.recipients),
            "used_fallback": self.used_fallback,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "failed_recipients": list(self.failed_recipients),
        }


def _threshold(threshold: int | None) -> int:
    if threshold is None:
        return int(current_app.config.get("LOW_STOCK_THRESHOLD", 500))
    return int(threshold)


def severity_for(stock: float) -> str:
    critical = current_app.config.get("LOW_STOCK_CRITICAL", 100)
    return SEVERITY_CRITICAL if stock < critical else SEVERITY_WARNING


def find_low_stock(threshold: int | None = None, material_ids: list[str] | None = None) -> tuple[list[LowStockMaterial], int]:
    """
    Live raw materials whose stock is below threshold.

    material_ids=None scans everything. Returns (materials, checked_count).
    Stock lives in a JSON blob, so the comparison happens in Python.
    """
    threshold = _threshold(threshold)
    query = audit_service.active(RawMaterial)
    if material_ids is not None:
        if not material_ids:
            return [], 0
        query = query.filter(RawMaterial.id.in_(list(material_ids)))

    checked = query.all()
    low = [
        LowStockMaterial(
            id=material.id,
            name=material.name,
            stock=material.stock,
            unit=material.unit,
            threshold=threshold,
            severity=severity_for(material.stock),
        )
        for material in checked
        if material.stock < threshold
    ]
    low.sort(key=lambda m: (m.stock, m.name))
    return low, len(checked)


def resolve_recipients() -> tuple[list[User], bool]:
    """
    Users to notify, plus whether the fallback was used.

    Opted-in live users with an email; when nobody opted in, the first
    NOTIFICATION_FALLBACK_LIMIT live users with an email (anti-spam cap).
    """
    opted_in = (
        audit_service.active(User)
        .filter(User.receive_stock_notification.is_(True), User.email.isnot(None))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    if opted_in:
        return opted_in, False

    limit = min(int(current_app.config.get("NOTIFICATION_FALLBACK_LIMIT", 10)), 10)
    fallback = (
        audit_service.active(User)
        .filter(User.email.isnot(None))
        .order_by(User.name.asc(), User.id.asc())
        .limit(limit)
        .all()
    )
    return fallback, True


def render_low_stock_email(user: User, materials: list[LowStockMaterial], threshold: int) -> str:
    return mail_service.render_email(
        "low_stock_notification.html",
        user=user,
        materials=materials,
        threshold=threshold,
        generated_at=utcnow(),
    )


def notify_low_stock(material_ids: list[str] | None = None, threshold: int | None = None) -> NotificationReport:
    """
    Detect low stock and email the recipients. Never raises for send failures.
    """
    threshold = _threshold(threshold)
    materials, checked = find_low_stock(threshold, material_ids)

    current_app.logger.info(
        "Low stock check: threshold=%s checked=%s low=%s", threshold, checked, len(materials)
    )

    if not materials:
        return NotificationReport(
            notified=False,
            reason="No low stock materials found",
            threshold=threshold,
            materials_checked=checked,
        )

    users, used_fallback = resolve_recipients()
    report = NotificationReport(
        notified=False,
        threshold=threshold,
        materials_checked=checked,
        materials=materials,
        recipients=[u.email for u in users],
        used_fallback=used_fallback,
    )

    if not users:
        current_app.logger.warning(
            "Low stock detected but no users to notify: materials=%s", [m.id for m in materials]
        )
        report.reason = "No users found to send notifications"
        return report

    for user in users:
        try:
            html = render_low_stock_email(user, materials, threshold)
            mail_service.send_mail(user.email, SUBJECT, html, to_name=user.name)
            report.success_count += 1
        except Exception as e:
            current_app.logger.error("Failed to send low stock notification to %s: %s", user.email, e)
            report.failed_recipients.append(user.email)

    report.notified = report.success_count > 0
    if not report.notified:
        report.reason = "All notification sends failed"

    current_app.logger.info(
        "Low stock notification sent: materials=%s notified=%s failed=%s",
        len(materials), report.success_count, report.failed_recipients,
    )
    return report


def set_notification_preference(user: User, enabled: bool, ctx=audit_service.SYSTEM_CONTEXT) -> User:
    user.receive_stock_notification = bool(enabled)
    audit_service.stamp_updated(user, ctx)
    db.session.commit()
    return user


def bulk_set_notification_preference(user_ids: list[str], enabled: bool, *, exclusive: bool = False) -> dict:
    """
    Set the flag for user_ids. With exclusive=True (and enabled), every other
    live user is switched off, making user_ids the exact recipient list.
    """
    db.session.query(User).filter(User.id.in_(user_ids)).update(
        {User.receive_stock_notification: bool(enabled)}, synchronize_session=False
    )
    if exclusive and enabled:
        db.session.query(User).filter(User.id.notin_(user_ids)).update(
            {User.receive_stock_notification: False}, synchronize_session=False
        )
    db.session.commit()

    live = audit_service.active(User)
    return {
        "enabled_count": live.filter(User.receive_stock_notification.is_(True)).count(),
        "disabled_count": live.filter(User.receive_stock_notification.is_(False)).count(),
    }
