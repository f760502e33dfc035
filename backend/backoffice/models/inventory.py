from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, new_id


class RawMaterial(AuditMixin, db.Model):
    """
    Raw material with its stock kept inside the JSON blob:
    {"name": ..., "stock": ..., "unit": ...}.
    """
    __tablename__ = "raw_materials"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    data = db.Column(db.JSON, nullable=False, default=dict)

    @property
    def name(self) -> str:
        return (self.data or {}).get("name") or "Unknown"

    @property
    def unit(self) -> str:
        return (self.data or {}).get("unit") or "pcs"

    @property
    def stock(self) -> float:
        value = (self.data or {}).get("stock", 0)
        try:
            return float(value or 0)
        except (TypeError, ValueError):
            return 0.0

    def set_stock(self, value: float) -> None:
        # JSON columns are not mutation-tracked: assign a new dict
        data = dict(self.data or {})
        data["stock"] = int(value) if float(value).is_integer() else value
        self.data = data

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data": self.data or {},
            **self.audit_dict(),
        }


class Product(AuditMixin, db.Model):
    """
    Sellable product. `data["ingredients"]` is the bill of materials:
    [{"rawMaterialId": ..., "quantity": <per unit>}, ...].
    """
    __tablename__ = "products"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    data = db.Column(db.JSON, nullable=False, default=dict)

    @property
    def name(self) -> str:
        return (self.data or {}).get("name") or ""

    @property
    def ingredients(self) -> list[dict]:
        return list((self.data or {}).get("ingredients") or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data": self.data or {},
            **self.audit_dict(),
        }
