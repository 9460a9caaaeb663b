"""
Homogenization and Valuation Math

Pure functions turning raw surfaces into a single comparable metric,
reducing comparables to price statistics, and projecting those onto the
target property. None of these raise: degenerate inputs produce zeros.

Usage:
    from tasador.core.homogenization import valuate

    priced, stats, value_range = valuate(target, comparables)
"""

from typing import Iterable, List, Optional, Tuple

from tasador.core.models import (
    Comparable,
    PricedComparable,
    TargetProperty,
    ValuationStats,
    ValueRange,
)


def homogenize(covered: Optional[float], uncovered: Optional[float], factor: Optional[float]) -> float:
    """Homogenized surface: covered + uncovered * factor.

    Missing values count as zero. Negative inputs are not validated here.

    Example:
        >>> homogenize(50, 10, 0.5)
        55.0
    """
    return float((covered or 0) + (uncovered or 0) * (factor or 0))


def unit_price(price: Optional[float], h_surface: Optional[float]) -> float:
    """Price per homogenized square meter; 0 when the surface is 0 (unpriceable)."""
    if not h_surface:
        return 0.0
    return float((price or 0) / h_surface)


def target_surface(target: Optional[TargetProperty]) -> float:
    """Homogenized surface of the target property (0 without surface data)."""
    if target is None:
        return 0.0
    return homogenize(target.covered_surface, target.uncovered_surface, target.homogenization_factor)


def price_comparables(comparables: Iterable[Comparable]) -> List[PricedComparable]:
    """Attach homogenized surface and unit price, dropping unpriceable rows.

    Comparables whose unit price is <= 0 (zero price or zero surface) do not
    take part in the valuation.
    """
    priced = []
    for comparable in comparables:
        h_surface = homogenize(
            comparable.covered_surface,
            comparable.uncovered_surface,
            comparable.homogenization_factor,
        )
        h_price = unit_price(comparable.price, h_surface)
        if h_price > 0:
            priced.append(PricedComparable(comparable=comparable, h_surface=h_surface, h_price=h_price))
    return priced


def compute_statistics(unit_prices: Iterable[float]) -> ValuationStats:
    """Reduce unit prices to average, extremes and tercile thresholds.

    Terciles are taken at indices floor(n/3) and floor(2n/3) of the
    ascending prices, so small sets repeat boundary values: [100, 200, 300]
    gives terciles [200, 200, 300]. Valuations already issued depend on
    this indexing.

    Args:
        unit_prices: Homogenized unit prices; values <= 0 are ignored.

    Returns:
        ValuationStats; all zeros when nothing is priced.
    """
    prices = sorted(p for p in unit_prices if p > 0)
    n = len(prices)
    if n == 0:
        return ValuationStats()

    avg = sum(prices) / n
    t1 = prices[n // 3]
    t2 = prices[(2 * n) // 3]
    return ValuationStats(
        avg=avg,
        min=prices[0],
        max=prices[-1],
        terciles=[t1, avg, t2],
        count=n,
    )


def project_valuation(h_surface: float, stats: ValuationStats) -> ValueRange:
    """Scale the statistics by the target's homogenized surface.

    low = t1 * S, market = avg * S, high = t2 * S; all zero when S is 0.
    """
    if not h_surface:
        return ValueRange()
    return ValueRange(
        low=stats.terciles[0] * h_surface,
        market=stats.avg * h_surface,
        high=stats.terciles[2] * h_surface,
    )


def valuate(
    target: Optional[TargetProperty],
    comparables: Iterable[Comparable],
) -> Tuple[List[PricedComparable], ValuationStats, ValueRange]:
    """Run the whole pipeline for one target and its comparables."""
    priced = price_comparables(comparables)
    stats = compute_statistics(p.h_price for p in priced)
    return priced, stats, project_valuation(target_surface(target), stats)
