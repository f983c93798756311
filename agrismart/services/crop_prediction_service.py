"""
Crop Prediction Service.

Runs the full request flow for one field:
  location defaults -> yield estimate -> fertilizer plan -> suggestions

The advisor receives the unrounded estimate; the displayed yield is
rounded with the model's with_plan_decimals precision.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from agrismart.services.fertilizer_planner import (
    FertilizerPlanner,
    FertilizerRecommendation,
    fertilizer_planner,
)
from agrismart.services.location_catalog import LocationCatalog, location_catalog
from agrismart.services.optimization_advisor import (
    OptimizationAdvisor,
    OptimizationSuggestion,
    optimization_advisor,
)
from agrismart.services.validation import InvalidInputError, round_half_up
from agrismart.services.yield_estimator import YieldEstimator, yield_estimator

logger = logging.getLogger(__name__)


@dataclass
class FarmInput:
    """Farm parameters for one field."""
    crop: str
    area_ha: float
    rainfall_mm: Optional[float] = None
    temperature_c: Optional[float] = None
    fertilizer_kg: Optional[float] = None  # total, not per hectare
    selected_product: Optional[str] = "urea"
    location: Optional[str] = None
    soil_type: Optional[str] = None


@dataclass
class CropPrediction:
    """Yield, fertilizer plan and suggestions for one field."""
    crop: str
    crop_image: str
    yield_tons_per_ha: float
    inputs: FarmInput
    fertilizer_recommendations: List[FertilizerRecommendation] = field(default_factory=list)
    suggestions: List[OptimizationSuggestion] = field(default_factory=list)


class CropPredictionService:
    def __init__(
        self,
        estimator: Optional[YieldEstimator] = None,
        planner: Optional[FertilizerPlanner] = None,
        advisor: Optional[OptimizationAdvisor] = None,
        catalog: Optional[LocationCatalog] = None,
    ):
        self.estimator = estimator or yield_estimator
        self.planner = planner or fertilizer_planner
        self.advisor = advisor or optimization_advisor
        self.catalog = catalog or location_catalog

    def resolve_input(self, farm_input: FarmInput) -> FarmInput:
        """
        Fill missing values from the location catalog and the crop's N target.

        Raises:
            UnknownLocationError: location is given but not in the catalog
            InvalidInputError: rainfall or temperature missing with no location
        """
        resolved = farm_input
        if farm_input.location:
            location = self.catalog.get(farm_input.location)
            resolved = replace(
                resolved,
                location=location.name,
                rainfall_mm=location.rainfall_mm if resolved.rainfall_mm is None else resolved.rainfall_mm,
                temperature_c=location.avg_temp_c if resolved.temperature_c is None else resolved.temperature_c,
                soil_type=resolved.soil_type or location.soil_type,
            )
        if resolved.rainfall_mm is None or resolved.temperature_c is None:
            raise InvalidInputError("rainfall_mm and temperature_c are required when no location is given")
        if resolved.fertilizer_kg is None:
            resolved = replace(
                resolved,
                fertilizer_kg=self.planner.default_fertilizer_kg(resolved.crop, resolved.area_ha),
            )
        return resolved

    def predict(self, farm_input: FarmInput) -> CropPrediction:
        resolved = self.resolve_input(farm_input)

        raw_yield = self.estimator.estimate_raw(
            resolved.crop,
            resolved.rainfall_mm,
            resolved.temperature_c,
            resolved.fertilizer_kg,
            resolved.area_ha,
        )
        decimals = self.estimator.config.with_plan_decimals
        display_yield = max(self.estimator.config.floor_tons_ha, round_half_up(raw_yield, decimals))

        recommendations = self.planner.plan(resolved.crop, resolved.area_ha, resolved.selected_product)
        suggestions = self.advisor.advise(
            resolved.crop,
            resolved.area_ha,
            resolved.rainfall_mm,
            resolved.temperature_c,
            resolved.fertilizer_kg,
            raw_yield,
        )

        logger.info(
            f"Prediction for {resolved.crop} on {resolved.area_ha} ha"
            f"{' at ' + resolved.location if resolved.location else ''}: "
            f"{display_yield} t/ha, {len(recommendations)} fertilizer line(s), {len(suggestions)} suggestion(s)"
        )
        return CropPrediction(
            crop=resolved.crop,
            crop_image=self.estimator.crop_image(resolved.crop),
            yield_tons_per_ha=display_yield,
            inputs=resolved,
            fertilizer_recommendations=recommendations,
            suggestions=suggestions,
        )


# Singleton instance
crop_prediction_service = CropPredictionService()
