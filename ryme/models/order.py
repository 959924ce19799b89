"""Customer order and order item models."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from ryme.database import Base
from ryme.utils.formatters import iso, utcnow
import enum


class PaymentStatus(str, enum.Enum):
    """Order payment status. PENDING -> PAID is one-way."""
    PENDING = 'Pending'
    PAID = 'Paid'


class DiscountType(str, enum.Enum):
    """Order-level discount mode."""
    NONE = 'none'
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class Order(Base):
    """Customer order. Items and totals are frozen once paid."""

    __tablename__ = 'customer_order'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    customer_name = Column(String(255), nullable=False)
    customer_address = Column(Text, nullable=False, default='')
    order_date = Column(DateTime, nullable=False, default=utcnow, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    paid_at = Column(DateTime, nullable=True)
    restored_at = Column(DateTime, nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_type = Column(String(20), nullable=False, default=DiscountType.NONE.value)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_sales_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_profit = Column(Numeric(12, 2), nullable=False, default=0)

    version = Column(Integer, nullable=False)

    items = relationship(
        'OrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderItem.position'
    )

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f"<Order(id={self.id}, customer='{self.customer_name}', status={self.payment_status})>"

    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    def to_dict(self):
        return {
            'id': self.id,
            'customer_name': self.customer_name,
            'customer_address': self.customer_address or '',
            'order_date': iso(self.order_date),
            'payment_status': self.payment_status,
            'paid_at': iso(self.paid_at),
            'restored_at': iso(self.restored_at),
            'subtotal': self.subtotal,
            'discount': {'type': self.discount_type, 'value': self.discount_value},
            'discount_amount': self.discount_amount,
            'total_sales_price': self.total_sales_price,
            'total_profit': self.total_profit,
            'items': [item.to_dict() for item in self.items],
        }


class OrderItem(Base):
    """
    Order line with point-in-time copies of the product's price and cost.

    product_id is a plain reference (no FK) so snapshots outlive the product.
    """

    __tablename__ = 'order_item'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_order_item_quantity_positive'),
        CheckConstraint(
            'discount_percentage >= 0 AND discount_percentage <= 100',
            name='ck_order_item_discount_range'
        ),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(BigInteger, nullable=False)
    product_name = Column(String(255), nullable=False)
    sorting_code = Column(String(40), nullable=True)
    quantity = Column(Integer, nullable=False)
    sales_price_at_time = Column(Numeric(12, 2), nullable=False)
    cost_at_time = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    effective_price = Column(Numeric(12, 2), nullable=False)
    profit_at_time = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship('Order', back_populates='items')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'sorting_code': self.sorting_code,
            'quantity': self.quantity,
            'sales_price_at_time': self.sales_price_at_time,
            'cost_at_time': self.cost_at_time,
            'discount_percentage': self.discount_percentage,
            'effective_price': self.effective_price,
            'profit_at_time': self.profit_at_time,
            'line_total': self.line_total,
        }
