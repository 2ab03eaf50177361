"""
ComplyWatch Processing Statistics

Counts of how far messages travelled through the pipeline and the LLM cost
avoided by stopping early.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from complywatch.models.classification import ClassificationMethod
from complywatch.utils.constants import LLM_COST_PER_CALL


@dataclass
class ProcessingStats:
    total_processed: int = 0
    rules_filtered: int = 0
    pattern_filtered: int = 0
    cached: int = 0
    llm_processed: int = 0
    fallback: int = 0

    _FIELDS = {
        ClassificationMethod.RULES_ONLY: "rules_filtered",
        ClassificationMethod.PATTERN_ENHANCED: "pattern_filtered",
        ClassificationMethod.CACHED: "cached",
        ClassificationMethod.LLM_ENHANCED: "llm_processed",
        ClassificationMethod.FALLBACK: "fallback",
    }

    def record(self, method: ClassificationMethod) -> None:
        self.total_processed += 1
        name = self._FIELDS[method]
        setattr(self, name, getattr(self, name) + 1)

    def _percent(self, value: int) -> int:
        return round(value / self.total_processed * 100) if self.total_processed else 0

    def cost_savings(self) -> Dict[str, Any]:
        actual = self.llm_processed * LLM_COST_PER_CALL
        full = self.total_processed * LLM_COST_PER_CALL
        saved = full - actual
        return {
            "actual_cost": round(actual, 4),
            "full_llm_cost": round(full, 4),
            "savings": round(saved, 4),
            "savings_percent": round(saved / full * 100) if full else 0,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["efficiency"] = {
            "rules_filtered_percent": self._percent(self.rules_filtered),
            "pattern_filtered_percent": self._percent(self.pattern_filtered),
            "cached_percent": self._percent(self.cached),
            "llm_processed_percent": self._percent(self.llm_processed),
        }
        data["estimated_cost_savings"] = self.cost_savings()
        return data
