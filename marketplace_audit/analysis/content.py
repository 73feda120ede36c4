"""
Content analysis (offers export rows + optional offer insights)

Title length buckets:
    [150, 175] -> 100
    (0, 150)   -> 65
    > 175      -> 80  (too long, but fixable)
    0/missing  -> 0

score = round(0.7 * mean(title scores) + 0.3 * 100 * share of offers with price > 0)
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from marketplace_audit.analysis.records import OfferInsight, OfferRow, coerce_records
from marketplace_audit.analysis.types import AnalysisResult, Recommendation
from marketplace_audit.utils.helpers import clamp_score, round_int

TITLE_MIN_LENGTH = 150
TITLE_MAX_LENGTH = 175

# Sustainability claims bol.com does not allow in titles without certification
FORBIDDEN_KEYWORDS = [
    "Milieuvriendelijk",
    "Eco",
    "Duurzaam",
    "Biologisch afbreekbaar",
    "CO2-neutraal",
    "Klimaatneutraal",
]


def score_title(title: Optional[str]) -> int:
    length = len(title or "")
    if TITLE_MIN_LENGTH <= length <= TITLE_MAX_LENGTH:
        return 100
    if 0 < length < TITLE_MIN_LENGTH:
        return 65
    if length > TITLE_MAX_LENGTH:
        return 80
    return 0


def has_forbidden_keyword(title: str) -> bool:
    lowered = title.lower()
    return any(keyword.lower() in lowered for keyword in FORBIDDEN_KEYWORDS)


def analyze_content(
    offers: Sequence[Any],
    insights: Optional[Mapping[str, Optional[OfferInsight]]] = None,
) -> AnalysisResult:
    """
    Score listing content from the offers export.

    Args:
        offers: CSV rows (dicts, any known header variant) or OfferRow records
        insights: offer id -> OfferInsight (None for offers upstream skipped).
            When given, visit/impression/Buy Box aggregates are added to findings.
    """
    rows = coerce_records(offers, OfferRow)
    if not rows:
        return AnalysisResult(score=0, findings={"message": "No offers found", "offers_count": 0})

    title_scores = [score_title(row.title) for row in rows]
    priced = [row.price > 0 for row in rows]

    avg_title_score = sum(title_scores) / len(title_scores)
    price_set_share = sum(priced) / len(priced)
    score = clamp_score(avg_title_score * 0.7 + price_set_share * 100 * 0.3)

    short_titles = title_scores.count(65)
    missing_titles = title_scores.count(0)
    recommendations: List[Recommendation] = []

    if missing_titles > 0:
        recommendations.append(Recommendation(
            priority="high",
            title="Missing product titles",
            action=f"{missing_titles} offer(s) have no title. Add a Dutch title of 150-175 chars starting with the brand name.",
            impact="15-25% CTR improvement",
        ))

    if short_titles > 0:
        recommendations.append(Recommendation(
            priority="high",
            title="Short product titles",
            action=f"{short_titles} offer(s) have titles under 150 chars. Expand to 150-175 chars with relevant keywords.",
            impact="10-20% CTR improvement",
        ))

    if price_set_share < 1:
        recommendations.append(Recommendation(
            priority="medium",
            title="Offers missing price",
            action=f"{priced.count(False)} offer(s) have no price set. This disables the Buy Box.",
            impact="Direct sales recovery",
        ))

    findings: Dict[str, Any] = {
        "offers_count": len(rows),
        "avg_title_score": round_int(avg_title_score),
        "titles_in_range": title_scores.count(100),
        "titles_short": short_titles,
        "titles_long": title_scores.count(80),
        "titles_missing": missing_titles,
        "price_set_pct": round_int(price_set_share * 100),
        "forbidden_keyword_warning": any(has_forbidden_keyword(row.title) for row in rows),
    }

    if insights is not None:
        summary = _summarize_insights(rows, insights)
        findings.update(summary)
        avg_buy_box = summary["avg_buy_box_pct"]
        if avg_buy_box is not None and avg_buy_box < 50:
            recommendations.append(Recommendation(
                priority="medium",
                title="Low Buy Box win rate",
                action=f"Your average Buy Box win rate is {avg_buy_box}%. Optimise pricing and fulfilment to win more Buy Boxes.",
                impact="20-40% revenue increase",
            ))

    return AnalysisResult(score=score, findings=findings, recommendations=recommendations)


def _summarize_insights(rows: List[OfferRow], insights: Mapping[str, Optional[OfferInsight]]) -> Dict[str, Any]:
    totals = {"visits": 0.0, "impressions": 0.0, "clicks": 0.0, "conversions": 0.0}
    buy_box_pcts: List[float] = []
    per_offer: List[Dict[str, Any]] = []

    for row in rows:
        insight = insights.get(row.offer_id)
        if insight is None:
            continue
        totals["visits"] += insight.visits
        totals["impressions"] += insight.impressions
        totals["clicks"] += insight.clicks
        totals["conversions"] += insight.conversions
        if insight.buy_box_pct is not None:
            buy_box_pcts.append(insight.buy_box_pct)
        per_offer.append({
            "offer_id": row.offer_id,
            "title": row.title[:80],
            "visits": insight.visits,
            "impressions": insight.impressions,
            "buy_box_pct": insight.buy_box_pct,
        })

    per_offer.sort(key=lambda item: item["visits"], reverse=True)

    return {
        "total_visits": totals["visits"],
        "total_impressions": totals["impressions"],
        "total_clicks": totals["clicks"],
        "total_conversions": totals["conversions"],
        "avg_buy_box_pct": round_int(sum(buy_box_pcts) / len(buy_box_pcts)) if buy_box_pcts else None,
        "per_offer_insights": per_offer,
    }
