from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class TimePattern:
    """Spending observed in one (day-of-week, hour-of-day) bucket."""

    day_of_week: str
    time_of_day: str
    frequency: int
    average_spend: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PredictedSpend:
    """Projected next spend for a single category."""

    category: str
    likelihood: float
    predicted_date: datetime
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["predicted_date"] = self.predicted_date.isoformat()
        # Remove None values for cleaner JSON responses
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class CategorySpend:
    """Share of total spend for a single category."""

    category: str
    total_spent: float
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "total_spent": f"{self.total_spent:.2f}",
            "percentage": f"{self.percentage:.2f}",
        }


@dataclass
class SpendingAnalytics:
    top_categories: List[CategorySpend] = field(default_factory=list)
    spending_patterns: List[TimePattern] = field(default_factory=list)
    predicted_spending: List[PredictedSpend] = field(default_factory=list)
    total_spent: float = 0.0
    monthly_average: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "top_categories": [c.to_dict() for c in self.top_categories],
            "spending_patterns": [p.to_dict() for p in self.spending_patterns],
            "predicted_spending": [p.to_dict() for p in self.predicted_spending],
            "total_spent": round(self.total_spent, 2),
            "monthly_average": round(self.monthly_average, 2),
        }
