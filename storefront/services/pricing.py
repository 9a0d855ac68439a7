# storefront/services/pricing.py
"""Pure price arithmetic. No I/O, nothing here raises on unknown ids."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Mapping, Optional, Tuple

from storefront.domain.catalog import ProductCatalog
from storefront.domain.selection import coerce_pairs

ZERO = Decimal("0.00")


def calculate_price(product: ProductCatalog, selection: Optional[Mapping]) -> Decimal:
    """Unit price: base price plus the modifier of every selected parameter.

    An entry naming a group the product does not have, or a parameter
    outside that group, adds nothing. Each group id counts once.
    """
    price = Decimal(product.base_price)
    seen = set()

    for group_id, parameter_id in coerce_pairs(selection):
        if group_id in seen:
            continue
        seen.add(group_id)

        group = product.find_group(group_id)
        if group is None:
            continue
        param = group.find_parameter(parameter_id)
        if param is None:
            continue
        price += Decimal(param.price_modifier)

    return price


def line_total(product: ProductCatalog, selection: Optional[Mapping], quantity: int) -> Decimal:
    return calculate_price(product, selection) * quantity


def sum_totals(totals: Iterable[Decimal]) -> Decimal:
    return sum(totals, ZERO)


def savings_summary(original_price: Decimal, discounted_price: Decimal) -> Tuple[Decimal, int]:
    """(savings, savings_percent) for a special; percent rounds half up, 0 for a free original."""
    savings = Decimal(original_price) - Decimal(discounted_price)
    if original_price <= 0:
        return savings, 0
    percent = (savings / Decimal(original_price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return savings, int(percent)


def describe_selection(product: ProductCatalog, selection: Optional[Mapping]) -> List[dict]:
    """Human-readable parameters a selection resolves to, skipping the same entries the price skips."""
    described = []
    seen = set()
    for group_id, parameter_id in coerce_pairs(selection):
        if group_id in seen:
            continue
        seen.add(group_id)
        group = product.find_group(group_id)
        param = group.find_parameter(parameter_id) if group else None
        if param is None:
            continue
        described.append(
            {
                "group_id": group_id,
                "group": group.name,
                "parameter_id": param.id,
                "name": param.name,
                "price_modifier": param.price_modifier,
            }
        )
    return described
