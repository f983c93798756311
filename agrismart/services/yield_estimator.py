"""
Yield Estimator Service.

Transparent multiplicative factor model for predicted yield (tons/ha):
- Crop-specific multiplier on a base yield
- Rainfall, temperature and fertilizer-intensity adjustment bands
- Bounded random jitter, floored so the estimate never reaches zero

Band edges are strict comparisons. Rainfall between 800 and 1000 mm and
at or above 2000 mm receives no adjustment; temperature between 15-20 °C
and 30-35 °C is neutral.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Optional

from agrismart.core.config import YIELD_MODEL_PATH
from agrismart.services.agronomy_rules import load_rule_table
from agrismart.services.validation import (
    require_name,
    require_number,
    require_non_negative,
    require_positive_area,
    round_half_up,
)

logger = logging.getLogger(__name__)

DEFAULT_YIELD_MODEL = {
    "base_yield": 1.5,
    "crop_multipliers": {
        "Rice": 1.2, "Wheat": 1.1, "Maize": 1.0, "Sugarcane": 3.5, "Cotton(lint)": 0.5
    },
    "crop_aliases": {"Cotton": "Cotton(lint)"},
    "default_crop_multiplier": 1.0,
    "rainfall": {
        "favorable_min_mm": 1000, "favorable_max_mm": 2000, "favorable_factor": 1.3,
        "deficit_below_mm": 800, "deficit_factor": 0.7
    },
    "temperature": {
        "optimal_min_c": 20, "optimal_max_c": 30, "optimal_factor": 1.2,
        "cold_below_c": 15, "hot_above_c": 35, "stress_factor": 0.8
    },
    "fertilizer": {
        "optimal_min_kg_ha": 100, "optimal_max_kg_ha": 250, "optimal_factor": 1.15,
        "low_below_kg_ha": 50, "low_factor": 0.85
    },
    "jitter": {"min": 0.9, "max": 1.1},
    "floor_tons_ha": 0.1,
    "rounding": {"standalone_decimals": 2, "with_plan_decimals": 1},
    "crop_images": {
        "Rice": "rice", "Wheat": "wheat", "Maize": "maize",
        "Sugarcane": "sugarcane", "Cotton(lint)": "cotton"
    },
}

_yield_model_cache = None


def clear_yield_model_cache():
    """Clear the cache to reload the yield model on next call."""
    global _yield_model_cache
    _yield_model_cache = None


def load_yield_model() -> Dict:
    """Load yield model table from JSON file."""
    global _yield_model_cache
    if _yield_model_cache is None:
        _yield_model_cache = load_rule_table(YIELD_MODEL_PATH, DEFAULT_YIELD_MODEL, "yield model")
    return _yield_model_cache


@dataclass(frozen=True)
class YieldModelConfig:
    """Tunable constants of the yield factor model."""
    base_yield: float = 1.5
    crop_multipliers: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_YIELD_MODEL["crop_multipliers"])
    )
    crop_aliases: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_YIELD_MODEL["crop_aliases"])
    )
    default_crop_multiplier: float = 1.0
    # Rainfall (mm)
    rain_favorable_min: float = 1000
    rain_favorable_max: float = 2000
    rain_favorable_factor: float = 1.3
    rain_deficit_below: float = 800
    rain_deficit_factor: float = 0.7
    # Temperature (°C)
    temp_optimal_min: float = 20
    temp_optimal_max: float = 30
    temp_optimal_factor: float = 1.2
    temp_cold_below: float = 15
    temp_hot_above: float = 35
    temp_stress_factor: float = 0.8
    # Fertilizer rate (kg/ha)
    fert_optimal_min: float = 100
    fert_optimal_max: float = 250
    fert_optimal_factor: float = 1.15
    fert_low_below: float = 50
    fert_low_factor: float = 0.85
    jitter_min: float = 0.9
    jitter_max: float = 1.1
    floor_tons_ha: float = 0.1
    standalone_decimals: int = 2
    with_plan_decimals: int = 1
    crop_images: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_YIELD_MODEL["crop_images"])
    )

    @classmethod
    def from_table(cls, table: Dict) -> "YieldModelConfig":
        rain = table.get("rainfall", {})
        temp = table.get("temperature", {})
        fert = table.get("fertilizer", {})
        jitter = table.get("jitter", {})
        rounding = table.get("rounding", {})
        defaults = cls()
        return cls(
            base_yield=table.get("base_yield", defaults.base_yield),
            crop_multipliers=table.get("crop_multipliers", defaults.crop_multipliers),
            crop_aliases=table.get("crop_aliases", defaults.crop_aliases),
            default_crop_multiplier=table.get("default_crop_multiplier", defaults.default_crop_multiplier),
            rain_favorable_min=rain.get("favorable_min_mm", defaults.rain_favorable_min),
            rain_favorable_max=rain.get("favorable_max_mm", defaults.rain_favorable_max),
            rain_favorable_factor=rain.get("favorable_factor", defaults.rain_favorable_factor),
            rain_deficit_below=rain.get("deficit_below_mm", defaults.rain_deficit_below),
            rain_deficit_factor=rain.get("deficit_factor", defaults.rain_deficit_factor),
            temp_optimal_min=temp.get("optimal_min_c", defaults.temp_optimal_min),
            temp_optimal_max=temp.get("optimal_max_c", defaults.temp_optimal_max),
            temp_optimal_factor=temp.get("optimal_factor", defaults.temp_optimal_factor),
            temp_cold_below=temp.get("cold_below_c", defaults.temp_cold_below),
            temp_hot_above=temp.get("hot_above_c", defaults.temp_hot_above),
            temp_stress_factor=temp.get("stress_factor", defaults.temp_stress_factor),
            fert_optimal_min=fert.get("optimal_min_kg_ha", defaults.fert_optimal_min),
            fert_optimal_max=fert.get("optimal_max_kg_ha", defaults.fert_optimal_max),
            fert_optimal_factor=fert.get("optimal_factor", defaults.fert_optimal_factor),
            fert_low_below=fert.get("low_below_kg_ha", defaults.fert_low_below),
            fert_low_factor=fert.get("low_factor", defaults.fert_low_factor),
            jitter_min=jitter.get("min", defaults.jitter_min),
            jitter_max=jitter.get("max", defaults.jitter_max),
            floor_tons_ha=table.get("floor_tons_ha", defaults.floor_tons_ha),
            standalone_decimals=rounding.get("standalone_decimals", defaults.standalone_decimals),
            with_plan_decimals=rounding.get("with_plan_decimals", defaults.with_plan_decimals),
            crop_images=table.get("crop_images", defaults.crop_images),
        )


@dataclass
class YieldPrediction:
    """Predicted yield for one field."""
    tons_per_hectare: float
    crop: str
    crop_image: str = ""


class YieldEstimator:
    """
    Heuristic crop yield estimator.

    Methodology:
    1. base_yield x crop multiplier (unknown crops use the default multiplier)
    2. x rainfall factor
    3. x temperature factor
    4. x fertilizer-intensity factor (fertilizer_kg / area_ha)
    5. x uniform jitter in [jitter_min, jitter_max]
    6. floor at floor_tons_ha, then round
    """

    def __init__(self, config: Optional[YieldModelConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or YieldModelConfig.from_table(load_yield_model())
        self.rng = rng or random.Random()

    def resolve_crop(self, crop: str) -> str:
        """Map aliases ('Cotton') onto the canonical crop key ('Cotton(lint)')."""
        return self.config.crop_aliases.get(crop, crop)

    def crop_multiplier(self, crop: str) -> float:
        key = self.resolve_crop(crop)
        if key in self.config.crop_multipliers:
            return self.config.crop_multipliers[key]
        logger.warning(f"Unknown crop '{crop}', using default multiplier {self.config.default_crop_multiplier}")
        return self.config.default_crop_multiplier

    def rainfall_factor(self, rainfall_mm: float) -> float:
        cfg = self.config
        if cfg.rain_favorable_min < rainfall_mm < cfg.rain_favorable_max:
            return cfg.rain_favorable_factor
        elif rainfall_mm < cfg.rain_deficit_below:
            return cfg.rain_deficit_factor
        return 1.0

    def temperature_factor(self, temperature_c: float) -> float:
        cfg = self.config
        if cfg.temp_optimal_min < temperature_c < cfg.temp_optimal_max:
            return cfg.temp_optimal_factor
        elif temperature_c < cfg.temp_cold_below or temperature_c > cfg.temp_hot_above:
            return cfg.temp_stress_factor
        return 1.0

    def fertilizer_factor(self, fertilizer_kg_ha: float) -> float:
        cfg = self.config
        if cfg.fert_optimal_min < fertilizer_kg_ha < cfg.fert_optimal_max:
            return cfg.fert_optimal_factor
        elif fertilizer_kg_ha < cfg.fert_low_below:
            return cfg.fert_low_factor
        return 1.0

    def estimate_raw(
        self,
        crop: str,
        rainfall_mm: float,
        temperature_c: float,
        fertilizer_kg: float,
        area_ha: float,
    ) -> float:
        """Floored but unrounded yield estimate in tons/ha."""
        crop = require_name("crop", crop)
        rainfall_mm = require_non_negative("rainfall_mm", rainfall_mm)
        temperature_c = require_number("temperature_c", temperature_c)
        fertilizer_kg = require_non_negative("fertilizer_kg", fertilizer_kg)
        area_ha = require_positive_area(area_ha)

        fertilizer_kg_ha = fertilizer_kg / area_ha
        crop_factor = self.crop_multiplier(crop)
        rain_factor = self.rainfall_factor(rainfall_mm)
        temp_factor = self.temperature_factor(temperature_c)
        fert_factor = self.fertilizer_factor(fertilizer_kg_ha)
        jitter = self.rng.uniform(self.config.jitter_min, self.config.jitter_max)

        value = self.config.base_yield * crop_factor * rain_factor * temp_factor * fert_factor * jitter
        logger.debug(
            f"Yield factors for {crop}: crop={crop_factor}, rain={rain_factor}, "
            f"temp={temp_factor}, fert={fert_factor} ({fertilizer_kg_ha:.1f} kg/ha), "
            f"jitter={jitter:.3f} -> {value:.3f} t/ha"
        )
        return max(self.config.floor_tons_ha, value)

    def estimate(
        self,
        crop: str,
        rainfall_mm: float,
        temperature_c: float,
        fertilizer_kg: float,
        area_ha: float,
        decimals: Optional[int] = None,
    ) -> float:
        """
        Estimate yield in tons/ha.

        Args:
            crop: Crop name (Rice, Wheat, Maize, Sugarcane, Cotton(lint))
            rainfall_mm: Annual rainfall in mm
            temperature_c: Average temperature in °C
            fertilizer_kg: Total fertilizer applied over the whole area
            area_ha: Cultivated area in hectares (> 0)
            decimals: Rounding precision, defaults to standalone_decimals

        Returns:
            Rounded yield, never below floor_tons_ha
        """
        if decimals is None:
            decimals = self.config.standalone_decimals
        raw = self.estimate_raw(crop, rainfall_mm, temperature_c, fertilizer_kg, area_ha)
        return max(self.config.floor_tons_ha, round_half_up(raw, decimals))

    def crop_image(self, crop: str) -> str:
        return self.config.crop_images.get(self.resolve_crop(crop), "")

    def predict(
        self,
        crop: str,
        rainfall_mm: float,
        temperature_c: float,
        fertilizer_kg: float,
        area_ha: float,
        decimals: Optional[int] = None,
    ) -> YieldPrediction:
        tons = self.estimate(crop, rainfall_mm, temperature_c, fertilizer_kg, area_ha, decimals)
        return YieldPrediction(tons_per_hectare=tons, crop=crop, crop_image=self.crop_image(crop))

    def upper_bound(self) -> float:
        """Largest value the model can produce with every favorable factor stacked."""
        cfg = self.config
        best_crop = max(list(cfg.crop_multipliers.values()) + [cfg.default_crop_multiplier])
        return (
            cfg.base_yield * best_crop
            * max(cfg.rain_favorable_factor, cfg.rain_deficit_factor, 1.0)
            * max(cfg.temp_optimal_factor, cfg.temp_stress_factor, 1.0)
            * max(cfg.fert_optimal_factor, cfg.fert_low_factor, 1.0)
            * cfg.jitter_max
        )


# Singleton instance
yield_estimator = YieldEstimator()
