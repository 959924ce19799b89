"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from ryme.database import Base
from ryme.utils.formatters import iso


class Product(Base):
    """Priced product with stock on hand."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('sales_price >= cost_of_production', name='ck_product_price_covers_cost'),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    # Segmented identity
    brand_name = Column(String(120), nullable=True)
    product_name = Column(String(120), nullable=True)
    volume_size = Column(String(60), nullable=True)
    name = Column(String(255), nullable=False)
    sorting_code = Column(String(40), nullable=True, index=True)
    category = Column(String(120), nullable=True)
    description = Column(Text, nullable=False, default='')

    stock_quantity = Column(Integer, nullable=False, default=0)
    cost_of_production = Column(Numeric(12, 2), nullable=False, default=0)
    markup_percentage = Column(Numeric(7, 2), nullable=False, default=0)
    markup_amount = Column(Numeric(12, 2), nullable=False, default=0)
    sales_price = Column(Numeric(12, 2), nullable=False)
    profit = Column(Numeric(12, 2), nullable=False)

    # Optimistic concurrency: every UPDATE checks and bumps this counter
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"

    @property
    def markup_mode(self):
        """'amount' when a fixed markup is active, otherwise 'percentage'."""
        return 'amount' if self.markup_amount else 'percentage'

    def to_dict(self):
        return {
            'id': self.id,
            'brand_name': self.brand_name,
            'product_name': self.product_name,
            'volume_size': self.volume_size,
            'name': self.name,
            'sorting_code': self.sorting_code,
            'category': self.category,
            'description': self.description or '',
            'stock_quantity': self.stock_quantity,
            'cost_of_production': self.cost_of_production,
            'markup_percentage': self.markup_percentage,
            'markup_amount': self.markup_amount,
            'sales_price': self.sales_price,
            'profit': self.profit,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
