"""
Optimization Advisor Service.

Derives human-readable interventions from the farm parameters and the
predicted yield. Rules run in a fixed order, each contributing at most one
suggestion:

1. Rainfall     - drip irrigation (dry) / drainage (wet)
2. Temperature  - cold-resistant varieties (cold-sensitive crops) / shade nets (heat)
3. Fertilizer   - increase (low rate) / reduce (high rate)
4. Wheat heat   - adjust planting schedule
5. Rice water   - System of Rice Intensification
6. Low yield    - soil testing
7. Large area   - precision agriculture

The result keeps generation order and is cut to the first
max_suggestions entries. Truncation ignores priority: a high-priority
suggestion generated fifth is dropped while a medium one generated
fourth is kept.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from agrismart.core.config import ADVISOR_RULES_PATH
from agrismart.services.agronomy_rules import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    load_rule_table,
)
from agrismart.services.validation import (
    require_name,
    require_non_negative,
    require_number,
    require_positive_area,
    round_to_int,
)

logger = logging.getLogger(__name__)

DEFAULT_ADVISOR_RULES = {
    "max_suggestions": 4,
    "rainfall": {"irrigation_below_mm": 800, "drainage_above_mm": 2500},
    "temperature": {"cold_below_c": 20, "cold_sensitive_crops": ["Rice", "Maize"], "heat_above_c": 35},
    "fertilizer": {"increase_below_kg_ha": 100, "reduce_above_kg_ha": 300},
    "wheat_heat_above_c": 30,
    "rice_sri_below_mm": 1000,
    "low_yield_below_tons_ha": 2,
    "precision_area_above_ha": 50,
}

_advisor_rules_cache = None


def clear_advisor_rules_cache():
    """Clear the cache to reload advisor rules on next call."""
    global _advisor_rules_cache
    _advisor_rules_cache = None


def load_advisor_rules() -> Dict:
    """Load advisor thresholds from JSON file."""
    global _advisor_rules_cache
    if _advisor_rules_cache is None:
        _advisor_rules_cache = load_rule_table(ADVISOR_RULES_PATH, DEFAULT_ADVISOR_RULES, "advisor rules")
    return _advisor_rules_cache


@dataclass(frozen=True)
class AdvisorConfig:
    max_suggestions: int = 4
    irrigation_below_mm: float = 800
    drainage_above_mm: float = 2500
    cold_below_c: float = 20
    cold_sensitive_crops: Tuple[str, ...] = ("Rice", "Maize")
    heat_above_c: float = 35
    fertilizer_increase_below: float = 100
    fertilizer_reduce_above: float = 300
    wheat_heat_above_c: float = 30
    rice_sri_below_mm: float = 1000
    low_yield_below: float = 2
    precision_area_above_ha: float = 50

    @classmethod
    def from_table(cls, table: Dict) -> "AdvisorConfig":
        rain = table.get("rainfall", {})
        temp = table.get("temperature", {})
        fert = table.get("fertilizer", {})
        d = cls()
        return cls(
            max_suggestions=table.get("max_suggestions", d.max_suggestions),
            irrigation_below_mm=rain.get("irrigation_below_mm", d.irrigation_below_mm),
            drainage_above_mm=rain.get("drainage_above_mm", d.drainage_above_mm),
            cold_below_c=temp.get("cold_below_c", d.cold_below_c),
            cold_sensitive_crops=tuple(temp.get("cold_sensitive_crops", d.cold_sensitive_crops)),
            heat_above_c=temp.get("heat_above_c", d.heat_above_c),
            fertilizer_increase_below=fert.get("increase_below_kg_ha", d.fertilizer_increase_below),
            fertilizer_reduce_above=fert.get("reduce_above_kg_ha", d.fertilizer_reduce_above),
            wheat_heat_above_c=table.get("wheat_heat_above_c", d.wheat_heat_above_c),
            rice_sri_below_mm=table.get("rice_sri_below_mm", d.rice_sri_below_mm),
            low_yield_below=table.get("low_yield_below_tons_ha", d.low_yield_below),
            precision_area_above_ha=table.get("precision_area_above_ha", d.precision_area_above_ha),
        )


@dataclass
class OptimizationSuggestion:
    title: str
    description: str
    priority: str


@dataclass
class AdvisorContext:
    """Inputs shared by every rule."""
    crop: str
    area_ha: float
    rainfall_mm: float
    temperature_c: float
    fertilizer_kg: float
    predicted_yield: float
    fertilizer_kg_ha: float = field(init=False)

    def __post_init__(self):
        self.fertilizer_kg_ha = self.fertilizer_kg / self.area_ha


def _fmt(value: float) -> str:
    """Render 700.0 as '700' and 32.5 as '32.5', shortest round-trip otherwise."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


Rule = Callable[[AdvisorContext], Optional[OptimizationSuggestion]]


class OptimizationAdvisor:
    """Rule-based generator of prioritized optimization suggestions."""

    def __init__(self, config: Optional[AdvisorConfig] = None):
        self.config = config or AdvisorConfig.from_table(load_advisor_rules())
        self.rules: List[Rule] = [
            self._rainfall_rule,
            self._temperature_rule,
            self._fertilizer_rule,
            self._wheat_schedule_rule,
            self._rice_sri_rule,
            self._soil_testing_rule,
            self._precision_agriculture_rule,
        ]

    def _rainfall_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.rainfall_mm < self.config.irrigation_below_mm:
            return OptimizationSuggestion(
                title="Implement Drip Irrigation",
                description=(
                    f"Low rainfall detected ({_fmt(ctx.rainfall_mm)}mm). Install drip irrigation to "
                    "improve water efficiency by 40-60% and boost yields."
                ),
                priority=PRIORITY_HIGH,
            )
        elif ctx.rainfall_mm > self.config.drainage_above_mm:
            return OptimizationSuggestion(
                title="Improve Drainage Systems",
                description=(
                    f"High rainfall ({_fmt(ctx.rainfall_mm)}mm) detected. Install proper drainage to "
                    "prevent waterlogging and root diseases."
                ),
                priority=PRIORITY_HIGH,
            )
        return None

    def _temperature_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.temperature_c < self.config.cold_below_c and ctx.crop in self.config.cold_sensitive_crops:
            return OptimizationSuggestion(
                title="Consider Cold-Resistant Varieties",
                description=(
                    f"Temperature {_fmt(ctx.temperature_c)}°C is below optimal. Switch to cold-resistant "
                    f"{ctx.crop.lower()} varieties for better yields."
                ),
                priority=PRIORITY_MEDIUM,
            )
        elif ctx.temperature_c > self.config.heat_above_c:
            return OptimizationSuggestion(
                title="Apply Shade Nets & Mulching",
                description=(
                    f"High temperature ({_fmt(ctx.temperature_c)}°C) can stress crops. Use shade nets "
                    "and mulching to reduce heat stress."
                ),
                priority=PRIORITY_HIGH,
            )
        return None

    def _fertilizer_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        rate = ctx.fertilizer_kg_ha
        if rate < self.config.fertilizer_increase_below:
            return OptimizationSuggestion(
                title="Increase Fertilizer Application",
                description=(
                    f"Current rate is {round_to_int(rate)} kg/ha. Increase to 150-200 kg/ha with soil "
                    "testing for optimal nutrient balance."
                ),
                priority=PRIORITY_HIGH,
            )
        elif rate > self.config.fertilizer_reduce_above:
            return OptimizationSuggestion(
                title="Reduce Fertilizer to Prevent Burning",
                description=(
                    f"Over-fertilization detected ({round_to_int(rate)} kg/ha). Reduce by 30% to prevent "
                    "nutrient burn and save costs."
                ),
                priority=PRIORITY_MEDIUM,
            )
        return None

    def _wheat_schedule_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.crop == "Wheat" and ctx.temperature_c > self.config.wheat_heat_above_c:
            return OptimizationSuggestion(
                title="Adjust Wheat Planting Schedule",
                description=(
                    "High temperature affects wheat. Plant earlier (Oct-Nov) to avoid heat stress "
                    "during grain filling."
                ),
                priority=PRIORITY_MEDIUM,
            )
        return None

    def _rice_sri_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.crop == "Rice" and ctx.rainfall_mm < self.config.rice_sri_below_mm:
            return OptimizationSuggestion(
                title="Switch to SRI Method",
                description=(
                    "System of Rice Intensification (SRI) reduces water needs by 25-30% while "
                    "maintaining or increasing yields."
                ),
                priority=PRIORITY_MEDIUM,
            )
        return None

    def _soil_testing_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.predicted_yield < self.config.low_yield_below:
            return OptimizationSuggestion(
                title="Conduct Comprehensive Soil Testing",
                description=(
                    "Low predicted yield indicates possible soil deficiencies. Test for NPK, "
                    "micronutrients, and pH levels."
                ),
                priority=PRIORITY_HIGH,
            )
        return None

    def _precision_agriculture_rule(self, ctx: AdvisorContext) -> Optional[OptimizationSuggestion]:
        if ctx.area_ha > self.config.precision_area_above_ha:
            return OptimizationSuggestion(
                title="Implement Precision Agriculture",
                description=(
                    f"With {_fmt(ctx.area_ha)} hectares, invest in GPS-guided equipment and variable "
                    "rate technology for optimized input application."
                ),
                priority=PRIORITY_LOW,
            )
        return None

    def generate_all(self, ctx: AdvisorContext) -> List[OptimizationSuggestion]:
        """Every suggestion the rules produce, before truncation."""
        suggestions = []
        for rule in self.rules:
            suggestion = rule(ctx)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions

    def advise(
        self,
        crop: str,
        area_ha: float,
        rainfall_mm: float,
        temperature_c: float,
        fertilizer_kg: float,
        predicted_yield: float,
    ) -> List[OptimizationSuggestion]:
        """
        Generate optimization suggestions for a field.

        Args:
            crop: Crop name
            area_ha: Cultivated area in hectares (> 0)
            rainfall_mm: Annual rainfall in mm
            temperature_c: Average temperature in °C
            fertilizer_kg: Total fertilizer applied over the whole area
            predicted_yield: Yield estimate in tons/ha

        Returns:
            At most max_suggestions suggestions, in rule order
        """
        ctx = AdvisorContext(
            crop=require_name("crop", crop),
            area_ha=require_positive_area(area_ha),
            rainfall_mm=require_non_negative("rainfall_mm", rainfall_mm),
            temperature_c=require_number("temperature_c", temperature_c),
            fertilizer_kg=require_non_negative("fertilizer_kg", fertilizer_kg),
            predicted_yield=require_number("predicted_yield", predicted_yield),
        )
        suggestions = self.generate_all(ctx)
        if len(suggestions) > self.config.max_suggestions:
            dropped = [s.title for s in suggestions[self.config.max_suggestions:]]
            logger.debug(f"Dropping {len(dropped)} suggestion(s) past the cap: {dropped}")
        return suggestions[:self.config.max_suggestions]


# Singleton instance
optimization_advisor = OptimizationAdvisor()
