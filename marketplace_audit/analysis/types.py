"""Value objects produced by the category analyzers"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List


@dataclass(frozen=True)
class Recommendation:
    priority: str  # high, medium, low
    title: str
    action: str
    impact: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class AnalysisResult:
    score: int  # 0-100
    findings: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "findings": self.findings,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }
