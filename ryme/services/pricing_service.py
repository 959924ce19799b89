"""
Pricing engine: cost + markup -> sales price and profit.

Exactly one markup mode is authoritative per revision. A fixed amount wins
outright; otherwise the percentage is applied to the cost.
"""
from decimal import Decimal
from typing import Any, Dict, Union

from ryme.exceptions import ValidationError
from ryme.utils.formatters import money, to_decimal

Number = Union[int, float, Decimal, str, None]


def _provided(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == '')


def _parse(value: Number, field: str) -> Decimal:
    try:
        parsed = to_decimal(value, Decimal('0'))
    except ValueError:
        raise ValidationError(f'{field} must be a number')
    if parsed < 0:
        raise ValidationError(f'{field} cannot be negative')
    return parsed


def compute_pricing(cost: Number, markup_percentage: Number = None, markup_amount: Number = None) -> Dict[str, Decimal]:
    """
    Compute the stored pricing fields of a product.

    Args:
        cost: Cost of production (>= 0)
        markup_percentage: Markup as a percentage of cost
        markup_amount: Fixed markup; takes precedence when present

    Returns:
        dict with cost_of_production, markup_percentage, markup_amount,
        sales_price and profit (Decimals, two decimals)

    Raises:
        ValidationError: if neither markup is given, or a value is negative
    """
    percent_provided = _provided(markup_percentage)
    amount_provided = _provided(markup_amount)

    if not percent_provided and not amount_provided:
        raise ValidationError('markup required')

    cost_value = money(_parse(cost, 'cost_of_production'))

    if amount_provided:
        amount_value = money(_parse(markup_amount, 'markup_amount'))
        percent_value = Decimal('0.00')
        applied_markup = amount_value
    else:
        percent_value = money(_parse(markup_percentage, 'markup_percentage'))
        amount_value = Decimal('0.00')
        applied_markup = money(cost_value * percent_value / Decimal('100'))

    sales_price = cost_value + applied_markup
    return {
        'cost_of_production': cost_value,
        'markup_percentage': percent_value,
        'markup_amount': amount_value,
        'sales_price': sales_price,
        'profit': sales_price - cost_value,
    }
