"""Seller performance indicator analysis"""
from typing import Any, Dict, List, Sequence

from marketplace_audit.analysis.records import PerformanceIndicator, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation

NEEDS_IMPROVEMENT_PENALTY = 15
AT_RISK_PENALTY = 25

# Stored when upstream returned no indicators, so readers never wait on a category
PLACEHOLDER_SCORE = 100


def _show(value) -> str:
    return "?" if value is None else f"{value:g}"


def analyze_performance(indicators: Sequence[Any]) -> AnalysisResult:
    typed = coerce_records(indicators, PerformanceIndicator)
    needs_improvement = sum(1 for i in typed if i.status == "NEEDS_IMPROVEMENT")
    at_risk = sum(1 for i in typed if i.status == "AT_RISK")

    score = max(0, 100 - needs_improvement * NEEDS_IMPROVEMENT_PENALTY - at_risk * AT_RISK_PENALTY)

    recommendations: List[Recommendation] = []
    for indicator in typed:
        if indicator.status == "AT_RISK":
            recommendations.append(Recommendation(
                priority="high",
                title=f"{indicator.name} is AT RISK",
                action=(
                    f"Your {indicator.name} ({_show(indicator.score)}) is below bol.com's required threshold "
                    f"({_show(indicator.norm)}). Immediate action required to avoid account suspension."
                ),
                impact="Avoid seller suspension",
            ))
        elif indicator.status == "NEEDS_IMPROVEMENT":
            recommendations.append(Recommendation(
                priority="medium",
                title=f"{indicator.name} needs improvement",
                action=(
                    f"Your {indicator.name} ({_show(indicator.score)}) is below the target of "
                    f"{_show(indicator.norm)}. Act now before it becomes at-risk."
                ),
                impact="Maintain seller account standing",
            ))

    return AnalysisResult(
        score=score,
        findings={
            "indicators_count": len(typed),
            "at_risk_count": at_risk,
            "needs_improvement": needs_improvement,
            "indicators": [i.to_dict() for i in typed],
        },
        recommendations=recommendations,
    )


def placeholder_performance() -> AnalysisResult:
    findings: Dict[str, Any] = {
        "indicators_count": 0,
        "at_risk_count": 0,
        "needs_improvement": 0,
        "indicators": [],
        "message": "No performance data available for the requested week",
    }
    return AnalysisResult(score=PLACEHOLDER_SCORE, findings=findings)
