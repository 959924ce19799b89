"""Models package - exports all SQLAlchemy models."""
from ryme.models.product import Product
from ryme.models.order import Order, OrderItem, PaymentStatus, DiscountType
from ryme.models.recycle_bin import RecycleBinEntry
from ryme.models.activity_log import ActivityLogEntry, ActivityAction

__all__ = [
    'Product',
    'Order', 'OrderItem', 'PaymentStatus', 'DiscountType',
    'RecycleBinEntry',
    'ActivityLogEntry', 'ActivityAction',
]
