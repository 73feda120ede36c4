"""
Inventory analysis

FBR sellers ship from their own warehouse and bol.com does not track their
stock, so they get a fixed score instead of a stock-derived one. Everyone
else is scored over the FBB subset (or all items when none is marked FBB).

Stock buckets (units):
    out of stock   == 0
    critical low   (0, 7]
    low            (7, 15]
    overstock      > 180   (recommendation only, not scored)
"""
from typing import Any, List, Sequence

from marketplace_audit.analysis.records import InventoryItem, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation
from marketplace_audit.utils.helpers import clamp_score, round_int

EMPTY_INVENTORY_SCORE = 50
FBR_SELLER_SCORE = 75

CRITICAL_LOW_MAX = 7
LOW_STOCK_MAX = 15
OVERSTOCK_MIN = 180


def is_fbr_seller(items: List[InventoryItem]) -> bool:
    fbb = sum(1 for i in items if i.fulfilment_method == "FBB")
    fbr = sum(1 for i in items if i.fulfilment_method == "FBR")
    unknown = sum(1 for i in items if not i.fulfilment_method)
    all_zero_stock = all(i.actual_stock == 0 for i in items)
    return (fbr > 0 and fbb == 0) or (unknown == len(items) and all_zero_stock)


def analyze_inventory(inventory: Sequence[Any]) -> AnalysisResult:
    items = coerce_records(inventory, InventoryItem)
    if not items:
        return AnalysisResult(
            score=EMPTY_INVENTORY_SCORE,
            findings={"message": "No inventory data returned", "items_count": 0},
        )

    if is_fbr_seller(items):
        return AnalysisResult(
            score=FBR_SELLER_SCORE,
            findings={
                "items_count": len(items),
                "fulfilment_model": "FBR",
                "message": "FBR seller - stock managed in own warehouse, not tracked by bol.com",
                "fbr_items": len(items),
                "fbb_items": 0,
            },
            recommendations=[Recommendation(
                priority="medium",
                title="Consider FBB for best-sellers",
                action="Migrate high-volume products to Fulfilled by Bol (FBB) for faster delivery and Buy Box advantage.",
                impact="15-25% sales lift for FBB products",
            )],
        )

    fbb_items = [i for i in items if i.fulfilment_method == "FBB"]
    fbr_items = [i for i in items if i.fulfilment_method == "FBR"]
    scored = fbb_items or items
    stock_levels = [i.actual_stock for i in scored]

    out_of_stock = sum(1 for s in stock_levels if s == 0)
    critical_low = sum(1 for s in stock_levels if 0 < s <= CRITICAL_LOW_MAX)
    low_stock = sum(1 for s in stock_levels if CRITICAL_LOW_MAX < s <= LOW_STOCK_MAX)
    overstock = sum(1 for s in stock_levels if s > OVERSTOCK_MIN)
    total = len(scored)

    healthy_share = (total - out_of_stock - critical_low) / total
    score = clamp_score(healthy_share * 100)

    recommendations: List[Recommendation] = []
    if out_of_stock > 0:
        recommendations.append(Recommendation(
            priority="high",
            title=f"{out_of_stock} FBB product(s) out of stock",
            action="Replenish FBB stock immediately. Out-of-stock FBB products lose the Buy Box.",
            impact="Prevent lost sales from stockouts",
        ))
    if critical_low > 0:
        recommendations.append(Recommendation(
            priority="high",
            title=f"{critical_low} FBB product(s) critically low (<7 days)",
            action="Place replenishment order now before stockout.",
            impact="Prevent imminent revenue loss",
        ))
    if low_stock > 0:
        recommendations.append(Recommendation(
            priority="medium",
            title=f"{low_stock} FBB product(s) low stock (7-15 days)",
            action="Plan replenishment within the week.",
            impact="Maintain stable inventory coverage",
        ))
    if overstock > 0:
        recommendations.append(Recommendation(
            priority="low",
            title=f"{overstock} FBB product(s) overstocked (>180 days)",
            action="Consider promotional pricing to improve cash flow and reduce storage costs.",
            impact="Improved capital efficiency",
        ))
    if fbr_items:
        recommendations.append(Recommendation(
            priority="medium",
            title="Consider FBB for best-sellers",
            action=(
                f"You have {len(fbr_items)} FBR product(s). Migrating top sellers to FBB "
                "improves delivery speed and Buy Box win rate."
            ),
            impact="15-25% sales lift for converted products",
        ))

    return AnalysisResult(
        score=score,
        findings={
            "items_count": len(items),
            "fulfilment_model": "MIXED" if fbr_items and fbb_items else "FBB",
            "fbr_items": len(fbr_items),
            "fbb_items": len(fbb_items),
            "fbb_out_of_stock": out_of_stock,
            "fbb_critical_low": critical_low,
            "fbb_low_stock": low_stock,
            "fbb_overstock": overstock,
            "fbb_healthy": total - out_of_stock - critical_low - low_stock,
            "avg_fbb_stock": round_int(sum(stock_levels) / total),
        },
        recommendations=recommendations,
    )
