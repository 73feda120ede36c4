"""Returns analysis (open + handled return cases)"""
from collections import Counter
from typing import Any, List, Sequence

from marketplace_audit.analysis.records import ReturnItem, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation

BASE_SCORE = 90
TOP_REASONS = 5


def analyze_returns(open_returns: Sequence[Any], handled_returns: Sequence[Any]) -> AnalysisResult:
    open_items = coerce_records(open_returns, ReturnItem)
    handled_items = coerce_records(handled_returns, ReturnItem)
    total_open = len(open_items)

    # Weighted by quantity; Counter.most_common keeps first-seen order on ties
    reasons: Counter = Counter()
    for item in open_items + handled_items:
        reasons[item.reason] += item.quantity
    top_reasons = [{"reason": r, "count": c} for r, c in reasons.most_common(TOP_REASONS)]

    score = BASE_SCORE
    if total_open > 50:
        score -= 20
    elif total_open > 20:
        score -= 10

    recommendations: List[Recommendation] = []
    if total_open > 20:
        recommendations.append(Recommendation(
            priority="high" if total_open > 50 else "medium",
            title=f"{total_open} unhandled return(s)",
            action="Process open returns promptly. bol.com monitors return handling speed.",
            impact="Avoid performance penalties",
        ))
    if top_reasons and top_reasons[0]["count"] >= 3:
        top = top_reasons[0]
        recommendations.append(Recommendation(
            priority="medium",
            title=f'Top return reason: "{top["reason"]}"',
            action=(
                f"{top['count']} returns cite this reason. Investigate root cause: "
                "product description mismatch, quality issues, or packaging."
            ),
            impact="15-30% reduction in return rate",
        ))

    return AnalysisResult(
        score=max(0, score),
        findings={
            "open_count": total_open,
            "handled_count": len(handled_items),
            "top_reasons": top_reasons,
        },
        recommendations=recommendations,
    )
