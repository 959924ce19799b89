"""
Dashboard service.
Aggregates revenue/profit per day and the best-selling products.
"""

from typing import Any, Dict, Optional
from sqlalchemy import func, desc
from ryme.models import Order, OrderItem
from ryme.services.cache_service import CacheService
from ryme.utils.formatters import money

TOP_PRODUCTS_LIMIT = 5


def _day_key(value) -> str:
    """Normalize func.date() output (str on SQLite, date on Postgres)."""
    if value is None:
        return 'unknown'
    if hasattr(value, 'isoformat'):
        return value.isoformat()[:10]
    return str(value)[:10]


def compute_dashboard_stats(session, limit: int = TOP_PRODUCTS_LIMIT) -> Dict[str, Any]:
    """
    Compute dashboard aggregates over every order.

    Returns:
        dict with keys:
            - revenue_chart: [{'date', 'revenue', 'profit'}] ascending by date
            - top_products: [{'product_id', 'name', 'total_sold', 'total_revenue'}]
    """
    # 1. Revenue and profit per calendar day
    day = func.date(Order.order_date)
    daily_rows = session.query(
        day.label('day'),
        func.coalesce(func.sum(Order.total_sales_price), 0).label('revenue'),
        func.coalesce(func.sum(Order.total_profit), 0).label('profit')
    ).group_by(day).order_by(day.asc()).all()

    revenue_chart = [
        {
            'date': _day_key(row.day),
            'revenue': money(row.revenue),
            'profit': money(row.profit),
        }
        for row in daily_rows
    ]

    # 2. Top products by quantity sold (snapshot names, grouped by product)
    total_sold = func.sum(OrderItem.quantity).label('total_sold')
    top_rows = session.query(
        OrderItem.product_id.label('product_id'),
        func.max(OrderItem.product_name).label('name'),
        total_sold,
        func.sum(OrderItem.sales_price_at_time * OrderItem.quantity).label('total_revenue')
    ).group_by(
        OrderItem.product_id
    ).order_by(
        desc('total_sold'), OrderItem.product_id.asc()
    ).limit(limit).all()

    top_products = [
        {
            'product_id': row.product_id,
            'name': row.name or 'Unknown',
            'total_sold': int(row.total_sold or 0),
            'total_revenue': money(row.total_revenue or 0),
        }
        for row in top_rows
    ]

    return {'revenue_chart': revenue_chart, 'top_products': top_products}


def get_dashboard_stats(session, cache: Optional[CacheService] = None, ttl: Optional[int] = None) -> Dict[str, Any]:
    """Dashboard aggregates, served from Redis when available."""
    if cache is None:
        return compute_dashboard_stats(session)
    return cache.memoize('dashboard', 'stats', lambda: compute_dashboard_stats(session), ttl)
