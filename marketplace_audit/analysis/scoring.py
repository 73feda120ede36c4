"""
Overall seller health score

Weighted mean of the category scores that are present, re-normalised over
the weights of those categories. Returns None when no category is present.
"""
from typing import Mapping, Optional

from marketplace_audit.models.enums import Category
from marketplace_audit.utils.helpers import round_int

CATEGORY_WEIGHTS = {
    Category.CONTENT.value: 0.30,
    Category.INVENTORY.value: 0.25,
    Category.ORDERS.value: 0.20,
    Category.ADVERTISING.value: 0.15,
    Category.RETURNS.value: 0.05,
    Category.PERFORMANCE.value: 0.05,
}


def compute_overall_score(scores: Mapping[str, Optional[int]]) -> Optional[int]:
    weighted = 0.0
    total_weight = 0.0
    for category, weight in CATEGORY_WEIGHTS.items():
        score = scores.get(category)
        if score is None:
            continue
        weighted += score * weight
        total_weight += weight
    if total_weight == 0:
        return None
    return round_int(weighted / total_weight)
