"""Deterministic category analyzers for bol.com seller data"""

from marketplace_audit.analysis.types import AnalysisResult, Recommendation
from marketplace_audit.analysis.content import analyze_content
from marketplace_audit.analysis.inventory import analyze_inventory
from marketplace_audit.analysis.orders import analyze_orders
from marketplace_audit.analysis.advertising import analyze_advertising
from marketplace_audit.analysis.returns import analyze_returns
from marketplace_audit.analysis.performance import analyze_performance, placeholder_performance
from marketplace_audit.analysis.scoring import CATEGORY_WEIGHTS, compute_overall_score

__all__ = [
    "AnalysisResult",
    "Recommendation",
    "analyze_content",
    "analyze_inventory",
    "analyze_orders",
    "analyze_advertising",
    "analyze_returns",
    "analyze_performance",
    "placeholder_performance",
    "CATEGORY_WEIGHTS",
    "compute_overall_score",
]
