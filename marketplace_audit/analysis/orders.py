"""
Orders analysis

Cancellations are counted per order item carrying a cancellation reason and
divided by the number of orders. Items without a fulfilment method count as
FBR.
"""
from typing import Any, List, Sequence

from marketplace_audit.analysis.records import Order, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation
from marketplace_audit.utils.helpers import round_int, safe_divide

EMPTY_ORDERS_SCORE = 75

HIGH_CANCEL_RATE = 0.05
ELEVATED_CANCEL_RATE = 0.02
MIN_ORDERS_FOR_FBB_CHECK = 10


def analyze_orders(orders: Sequence[Any]) -> AnalysisResult:
    typed = coerce_records(orders, Order)
    if not typed:
        return AnalysisResult(
            score=EMPTY_ORDERS_SCORE,
            findings={"message": "No orders in the selected period", "orders_count": 0},
        )

    total = len(typed)
    cancellations = 0
    fbb_count = 0
    fbr_count = 0

    for order in typed:
        for item in order.items:
            if item.cancelled:
                cancellations += 1
            if item.fulfilment_method == "FBB":
                fbb_count += 1
            else:
                fbr_count += 1

    cancel_rate = cancellations / total
    fbb_rate = safe_divide(fbb_count, fbb_count + fbr_count)

    score = 100
    if cancel_rate > HIGH_CANCEL_RATE:
        score -= 30
    elif cancel_rate > ELEVATED_CANCEL_RATE:
        score -= 15
    if fbb_rate == 0 and total > MIN_ORDERS_FOR_FBB_CHECK:
        score -= 10

    recommendations: List[Recommendation] = []
    if cancel_rate > ELEVATED_CANCEL_RATE:
        recommendations.append(Recommendation(
            priority="high" if cancel_rate > HIGH_CANCEL_RATE else "medium",
            title=f"High cancellation rate ({round_int(cancel_rate * 100)}%)",
            action="Review cancellation reasons. Common causes: stock issues, fulfilment delays, pricing errors.",
            impact="15-25% reduction in cancellations",
        ))
    if fbb_rate < 0.5 and total > MIN_ORDERS_FOR_FBB_CHECK:
        recommendations.append(Recommendation(
            priority="medium",
            title="Low FBB usage",
            action="Migrate best-selling products to Fulfilled by Bol (FBB) for 30% faster delivery and Buy Box advantage.",
            impact="15-25% sales lift for FBB products",
        ))

    return AnalysisResult(
        score=max(0, score),
        findings={
            "orders_count": total,
            "cancellations": cancellations,
            "cancel_rate_pct": round_int(cancel_rate * 100),
            "fbr_orders": fbr_count,
            "fbb_orders": fbb_count,
            "fbb_rate_pct": round_int(fbb_rate * 100),
        },
        recommendations=recommendations,
    )
