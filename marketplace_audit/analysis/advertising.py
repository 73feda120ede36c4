"""
Advertising analysis (sponsored products)

Scoring starts at 70:
    ROAS >= 5                 +20
    3 <= ROAS < 5             +10
    ROAS < 1 with spend > 0   -20
    any campaign > 95% budget  -5

Budget utilisation estimates spend against a 30-day budget:
    min(100, spend / (daily_budget * 30) * 100)

The cap check uses the unrounded share; per_campaign shows it rounded.
"""
from typing import Any, Dict, List, Optional, Sequence

from marketplace_audit.analysis.records import AdGroup, Campaign, PerformanceSubtotal, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation
from marketplace_audit.utils.helpers import clamp_score, round_half_up, round_int

BASE_SCORE = 70
BUDGET_CAP_PCT = 95
BUDGET_DAYS = 30
LOW_CTR_PCT = 0.3
LOW_CTR_MIN_IMPRESSIONS = 10000
NO_CONVERSION_MIN_CLICKS = 100


def budget_utilisation_pct(spend: float, daily_budget: Optional[float]) -> float:
    if not daily_budget or daily_budget <= 0:
        return 0
    return min(100, spend * 100 / (daily_budget * BUDGET_DAYS))


def _ratio(numerator: float, denominator: float, digits: int = 2, scale: float = 1) -> float:
    if denominator <= 0:
        return 0
    return round_half_up(numerator / denominator * scale, digits)


def _fmt(value: float) -> str:
    return f"{value:g}"


def analyze_advertising(
    campaigns: Sequence[Any],
    ad_groups: Sequence[Any],
    performance: Sequence[Any],
) -> AnalysisResult:
    """
    Score advertising from campaigns and per-campaign performance subtotals.

    Ad groups are only counted; metrics come from the performance rows.
    """
    typed_campaigns = coerce_records(campaigns, Campaign)
    typed_groups = coerce_records(ad_groups, AdGroup)
    rows = coerce_records(performance, PerformanceSubtotal)

    if not typed_campaigns and not rows:
        return AnalysisResult(score=0, findings={"message": "No advertising data", "campaigns_count": 0})

    by_id: Dict[str, Campaign] = {c.campaign_id: c for c in typed_campaigns if c.campaign_id}
    total_spend = 0.0
    total_impressions = 0
    total_clicks = 0
    total_conversions = 0
    total_revenue = 0.0
    per_campaign: List[Dict[str, Any]] = []
    capped: List[Dict[str, Any]] = []

    for row in rows:
        total_spend += row.spend
        total_impressions += row.impressions
        total_clicks += row.clicks
        total_conversions += row.conversions
        total_revenue += row.revenue

        campaign = by_id.get(row.entity_id)
        utilisation = budget_utilisation_pct(row.spend, campaign.daily_budget if campaign else None)
        entry = {
            "id": row.entity_id,
            "name": campaign.name if campaign else f"Campaign {row.entity_id}",
            "spend": round_half_up(row.spend, 2),
            "impressions": row.impressions,
            "clicks": row.clicks,
            "ctr": _ratio(row.clicks, row.impressions, scale=100),
            "conversions": row.conversions,
            "roas": _ratio(row.revenue, row.spend),
            "budget_utilisation_pct": round_int(utilisation),
        }
        per_campaign.append(entry)
        if utilisation > BUDGET_CAP_PCT:
            capped.append(entry)

    per_campaign.sort(key=lambda item: item["spend"], reverse=True)
    capped.sort(key=lambda item: item["spend"], reverse=True)

    overall_ctr = _ratio(total_clicks, total_impressions, scale=100)
    overall_roas = _ratio(total_revenue, total_spend)

    score = BASE_SCORE
    if overall_roas >= 5:
        score += 20
    elif overall_roas >= 3:
        score += 10
    elif overall_roas < 1 and total_spend > 0:
        score -= 20
    if capped:
        score -= 5

    recommendations: List[Recommendation] = []
    if overall_roas < 3 and total_spend > 0:
        recommendations.append(Recommendation(
            priority="high",
            title=f"Low overall ROAS ({_fmt(overall_roas)}x)",
            action="Review keyword bids and match types. Pause high-spend / low-conversion keywords.",
            impact="Improve ad profitability by 30-50%",
        ))
    if capped:
        names = ", ".join(c["name"] for c in capped[:3])
        recommendations.append(Recommendation(
            priority="medium",
            title=f"{len(capped)} campaign(s) hitting budget cap",
            action=f"Campaigns nearing 100% budget utilisation may miss traffic. Consider increasing daily budgets: {names}.",
            impact="10-20% more impressions and clicks",
        ))
    if overall_ctr < LOW_CTR_PCT and total_impressions > LOW_CTR_MIN_IMPRESSIONS:
        recommendations.append(Recommendation(
            priority="medium",
            title=f"Low click-through rate ({_fmt(overall_ctr)}%)",
            action="Test different ad creatives and bid on more specific, high-intent keywords.",
            impact="Higher CTR means lower cost per click",
        ))
    if total_clicks > NO_CONVERSION_MIN_CLICKS and total_conversions == 0:
        recommendations.append(Recommendation(
            priority="high",
            title="No conversions despite clicks",
            action="Check that advertised products are in stock, have competitive prices, and are winning the Buy Box.",
            impact="Direct revenue impact",
        ))

    return AnalysisResult(
        score=clamp_score(score),
        findings={
            "campaigns_count": len(typed_campaigns),
            "active_campaigns": sum(1 for c in typed_campaigns if c.is_active),
            "ad_groups_count": len(typed_groups),
            "total_spend": round_half_up(total_spend, 2),
            "total_revenue": round_half_up(total_revenue, 2),
            "total_impressions": total_impressions,
            "total_clicks": total_clicks,
            "total_conversions": total_conversions,
            "conversion_rate_pct": _ratio(total_conversions, total_clicks, scale=100),
            "ctr_pct": overall_ctr,
            "roas": overall_roas,
            "acos_pct": _ratio(total_spend, total_revenue, scale=100),
            "campaigns_at_budget_cap": len(capped),
            "per_campaign": per_campaign,
        },
        recommendations=recommendations,
    )
