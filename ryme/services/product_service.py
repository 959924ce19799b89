"""
Product catalog service: create, update and delete priced products.
Deleted products are logged, not recycled.
"""
import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm.exc import StaleDataError

from ryme.exceptions import ValidationError, NotFoundError, ConflictError
from ryme.models import Product, ActivityAction
from ryme.services.activity_log_service import log_activity
from ryme.services.pricing_service import compute_pricing

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ('brand_name', 'product_name', 'volume_size')


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def derive_sorting_code(brand_name: Optional[str], product_name: Optional[str], volume_size: Optional[str]) -> Optional[str]:
    """
    Build a sorting code from the identity segments.

    Examples:
        derive_sorting_code('Nivea', 'Soft Cream', '200 ml') -> 'NIV-SOF-200ML'
        derive_sorting_code(None, 'Lip balm', None) -> 'LIP'
    """
    parts = []
    for value in (brand_name, product_name):
        chars = re.sub(r'[^0-9A-Za-z]', '', value or '')
        if chars:
            parts.append(chars[:3].upper())
    volume = re.sub(r'[^0-9A-Za-z.]', '', volume_size or '')
    if volume:
        parts.append(volume.upper())
    return '-'.join(parts) or None


def _display_name(data: Dict[str, Any]) -> Optional[str]:
    name = _clean(data.get('name'))
    if name:
        return name
    segments = [_clean(data.get(field)) for field in IDENTITY_FIELDS]
    joined = ' '.join(s for s in segments if s)
    return joined or None


def _parse_stock(value: Any) -> int:
    if value is None or value == '':
        return 0
    try:
        stock = Decimal(str(value))
    except Exception:
        raise ValidationError('stock_quantity must be an integer')
    if stock != stock.to_integral_value():
        raise ValidationError('stock_quantity must be an integer')
    if stock < 0:
        raise ValidationError('stock_quantity cannot be negative')
    return int(stock)


def _apply_fields(product: Product, data: Dict[str, Any], pricing: Dict[str, Decimal]) -> None:
    for field in IDENTITY_FIELDS + ('category',):
        if field in data:
            setattr(product, field, _clean(data.get(field)))

    name = _display_name({**{f: getattr(product, f) for f in IDENTITY_FIELDS}, 'name': data.get('name')})
    if not name and not product.name:
        raise ValidationError('Product name is required')
    if name:
        product.name = name

    if _clean(data.get('sorting_code')):
        product.sorting_code = _clean(data.get('sorting_code')).upper()
    elif 'sorting_code' in data or any(field in data for field in IDENTITY_FIELDS) or not product.sorting_code:
        product.sorting_code = derive_sorting_code(product.brand_name, product.product_name, product.volume_size)

    if 'description' in data or product.description is None:
        product.description = data.get('description') or ''

    if 'stock_quantity' in data or product.stock_quantity is None:
        product.stock_quantity = _parse_stock(data.get('stock_quantity'))

    for field, value in pricing.items():
        setattr(product, field, value)


def get_product(session, product_id: int) -> Product:
    """Get a product or raise NotFoundError."""
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    return product


def list_products(session) -> List[Product]:
    """All products ordered by sorting code, then name."""
    return session.query(Product).order_by(
        Product.sorting_code.is_(None),
        Product.sorting_code.asc(),
        Product.name.asc()
    ).all()


def create_product(session, data: Dict[str, Any]) -> Product:
    """
    Create a product. A markup percentage or amount is required.

    Raises:
        ValidationError: missing name or markup, negative values
    """
    pricing = compute_pricing(
        data.get('cost_of_production'),
        data.get('markup_percentage'),
        data.get('markup_amount')
    )

    try:
        product = Product()
        _apply_fields(product, data, pricing)
        session.add(product)
        session.flush()

        log_activity(
            session, ActivityAction.CREATE, 'product',
            f'Created product {product.name}',
            data=product.to_dict(), entity_id=product.id
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[CATALOG] Product {product.id} created ({product.sorting_code})")
    return product


def update_product(session, product_id: int, data: Dict[str, Any]) -> Product:
    """
    Update a product; pricing is always recomputed from the payload.

    Raises:
        NotFoundError: product does not exist
        ValidationError: invalid payload (markup required)
        ConflictError: product changed concurrently (e.g. a stock deduction)
    """
    product = get_product(session, product_id)

    cost = data.get('cost_of_production', product.cost_of_production)
    pricing = compute_pricing(cost, data.get('markup_percentage'), data.get('markup_amount'))

    try:
        before = product.to_dict()
        _apply_fields(product, data, pricing)
        session.flush()

        log_activity(
            session, ActivityAction.UPDATE, 'product',
            f'Updated product {product.name}',
            data={'before': before, 'after': product.to_dict()}, entity_id=product.id
        )
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConflictError(f'Product {product_id} was modified concurrently, reload and retry')
    except Exception:
        session.rollback()
        raise

    return product


def delete_product(session, product_id: int) -> Dict[str, Any]:
    """
    Delete a product permanently. Existing order items keep their snapshots.
    """
    product = get_product(session, product_id)
    snapshot = product.to_dict()

    try:
        session.delete(product)
        log_activity(
            session, ActivityAction.DELETE, 'product',
            f'Deleted product {snapshot["name"]}',
            data=snapshot, entity_id=product_id
        )
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConflictError(f'Product {product_id} was modified concurrently, reload and retry')
    except Exception:
        session.rollback()
        raise

    logger.info(f"[CATALOG] Product {product_id} deleted")
    return {'id': product_id}
