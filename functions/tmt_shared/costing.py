"""
Composition Cost Calculator
===========================

Pure arithmetic behind the full-kitting costing worksheet.

Per material row::

    yield2 = yield1 * percent / 100     (4 dp)
    fem2   = fem1   * percent / 100     (4 dp)
    price2 = price1 * percent / 100     (2 dp)

Composition::

    interest      = price2_total * 18% * interest_days / 365     (2 dp)
    total_price   = price2_total + manufacturing + interest + transporting
    selling_price = override, else total_price / 0.75 (0.00 when total <= 0)
    variable_cost = price2_total
    gp%           = (selling - variable) / selling * 100 (0.00 when selling <= 0)

Totals are summed from the rounded per-row strings, the same way the
worksheet sums its displayed cells. Rows without a material are ignored.
"""

import logging
from typing import List, Optional, Iterable

from .helpers import format_fixed, parse_float_safe
from .models import MaterialRow, Material, CompositionTotals
from .sheet_config import INTEREST_RATE, DAYS_PER_YEAR, SELLING_PRICE_DIVISOR

logger = logging.getLogger(__name__)


def apply_material(row: MaterialRow, material: Optional[Material]) -> MaterialRow:
    """Copy yield/fem/price from the materials master onto a row and recompute it."""
    if material is None:
        return compute_material_row(row)
    updated = row.model_copy(update={
        "particulars": material.name,
        "yield1": material.yield_pct,
        "fem1": material.fem,
        "price1": material.price,
    })
    return compute_material_row(updated)


def compute_material_row(row: MaterialRow) -> MaterialRow:
    """Return a copy of ``row`` with yield2/fem2/price2 derived from the inputs."""
    factor = row.percent / 100
    return row.model_copy(update={
        "yield2": format_fixed(row.yield1 * factor, 4),
        "fem2": format_fixed(row.fem1 * factor, 4),
        "price2": format_fixed(row.price1 * factor, 2),
    })


def selected_rows(rows: Iterable[MaterialRow]) -> List[MaterialRow]:
    """Rows with a material selected, derived fields recomputed."""
    return [compute_material_row(r) for r in rows if r.is_selected]


def compute_interest(price2_total: float, interest_days: float) -> str:
    """Simple daily interest at the fixed annual rate, 2 dp."""
    return format_fixed(price2_total * INTEREST_RATE * interest_days / DAYS_PER_YEAR, 2)


def compute_selling_price(total_price: float, override: Optional[str] = None) -> str:
    """Explicit override when given, else cost / 0.75."""
    if override is not None and str(override).strip() != "":
        return format_fixed(parse_float_safe(override), 2)
    if total_price > 0:
        return format_fixed(total_price / SELLING_PRICE_DIVISOR, 2)
    return "0.00"


def compute_gp_percentage(selling_price: float, variable_cost: float) -> str:
    """Gross profit as a percentage of selling price; 0.00 when there is no price."""
    if selling_price <= 0:
        return "0.00"
    return format_fixed((selling_price - variable_cost) / selling_price * 100, 2)


def compute_composition(
    rows: List[MaterialRow],
    manufacturing_cost: float = 0,
    interest_days: float = 0,
    transporting: float = 0,
    selling_price_override: Optional[str] = None,
) -> CompositionTotals:
    """
    Compute every figure of a composition.

    Args:
        rows: Material rows; rows with no material are ignored
        manufacturing_cost: Flat manufacturing cost
        interest_days: Days of interest on the material cost
        transporting: Flat transport cost
        selling_price_override: Selling price typed in by the user, if any

    Returns:
        CompositionTotals with fixed-decimal strings
    """
    computed = selected_rows(rows)

    percent_total = sum(r.percent for r in computed)
    yield_total = sum(parse_float_safe(r.yield2) for r in computed)
    fem_total = sum(parse_float_safe(r.fem2) for r in computed)
    price2_total = sum(parse_float_safe(r.price2) for r in computed)

    price2_total_str = format_fixed(price2_total, 2)
    price2_value = float(price2_total_str)

    interest = compute_interest(price2_value, interest_days)
    total_price = price2_value + manufacturing_cost + float(interest) + transporting

    selling_price = compute_selling_price(total_price, selling_price_override)
    variable_cost = price2_value
    gp = compute_gp_percentage(float(selling_price), variable_cost)

    logger.debug(
        f"Composition: rows={len(computed)}, material={price2_total_str}, "
        f"total={total_price:.2f}, selling={selling_price}, gp={gp}"
    )

    return CompositionTotals(
        percent_total=format_fixed(percent_total, 2),
        yield_total=format_fixed(yield_total, 4),
        fem_total=format_fixed(fem_total, 2),
        price2_total=price2_total_str,
        interest_amount=interest,
        total_price=format_fixed(total_price, 2),
        selling_price=selling_price,
        variable_cost=format_fixed(variable_cost, 2),
        gp_percentage=gp,
    )
