"""
Per-container cost sums for the two customs routing paths.

Home clearance and MOOWR (bonded warehouse) each apply their own subset of
a quote's cost components. Sea freight counts on both paths.
"""
from typing import Iterable, Optional, Tuple

from app.db.models import QuoteItem

HOME = "home"
MOOWR = "moowr"


def home_cost_per_container(quote: QuoteItem) -> float:
    return (
        quote.sea_freight_per_container
        + quote.house_delivery_order_per_bol
        + quote.cfs_per_container
        + quote.transportation_per_container
        + quote.cha_charges_home
        + quote.edi_charges_per_boe
    )


def moowr_cost_per_container(quote: QuoteItem) -> float:
    return (
        quote.sea_freight_per_container
        + quote.cha_charges_moowr
        + quote.moowr_reewarehousing_charges
    )


def derive_totals(quote: QuoteItem, home: int, moowr: int) -> Tuple[float, float]:
    """Return (homeTotal, mooWRTotal) for an allotment on this quote."""
    return (
        home * home_cost_per_container(quote),
        moowr * moowr_cost_per_container(quote),
    )


def cheapest_path(quotes: Iterable[QuoteItem]) -> Optional[Tuple[QuoteItem, str, float]]:
    """
    Find the (quote, path, per-container cost) with the lowest cost.

    Home wins a tie against MOOWR on the same quote, and the earlier quote
    in iteration order wins a tie across quotes.
    """
    best = None
    for quote in quotes:
        for path, cost in ((HOME, home_cost_per_container(quote)), (MOOWR, moowr_cost_per_container(quote))):
            if best is None or cost < best[2]:
                best = (quote, path, cost)
    return best
