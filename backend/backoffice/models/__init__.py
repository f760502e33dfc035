from .base import AuditMixin, new_id
from .organization import Organization, Department
from .auth import Role, Window, RoleWindow, User, SessionToken
from .inventory import RawMaterial, Product
from .orders import Order, OrderItem, RawMaterialUsage
from .production import WorkOrder, FinishedGood, DeliveryOrder, DeliveryOrderItem
from .documents import DocumentSequence

__all__ = [
    'AuditMixin', 'new_id',
    'Organization', 'Department',
    'Role', 'Window', 'RoleWindow', 'User', 'SessionToken',
    'RawMaterial', 'Product',
    'Order', 'OrderItem', 'RawMaterialUsage',
    'WorkOrder', 'FinishedGood', 'DeliveryOrder', 'DeliveryOrderItem',
    'DocumentSequence',
]
