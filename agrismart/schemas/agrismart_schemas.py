"""
Pydantic schemas for the AgriSmart API.
Request bodies for estimation, planning and advice, and the matching responses.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ==================== ENUMS ====================

class CropEnum(str, Enum):
    """Crops with tuned multipliers and nutrient targets."""
    RICE = "Rice"
    WHEAT = "Wheat"
    MAIZE = "Maize"
    SUGARCANE = "Sugarcane"
    COTTON = "Cotton(lint)"


class FertilizerProductEnum(str, Enum):
    """Products a user may select as primary fertilizer."""
    UREA = "urea"
    DAP = "dap"
    MOP = "mop"
    NPK = "npk"
    SSP = "ssp"
    ORGANIC = "organic"


class PriorityEnum(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SensorStatusEnum(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


# ==================== LOCATION SCHEMAS ====================

class LocationResponse(BaseModel):
    """District defaults used to pre-fill farm parameters."""
    name: str
    rainfall_mm: float
    avg_temp_c: float
    soil_type: str
    latitude: float
    longitude: float


class LocationListResponse(BaseModel):
    items: List[LocationResponse]
    total: int


# ==================== ESTIMATION SCHEMAS ====================
# Crop and product names are plain strings: unknown names fall back to
# default multipliers/targets instead of being rejected.

class FieldConditions(BaseModel):
    """Parameters shared by estimation and advice requests."""
    crop: str = Field(..., min_length=1, description="Crop name (Rice, Wheat, Maize, Sugarcane, Cotton(lint))")
    area_ha: float = Field(..., gt=0, description="Cultivated area in hectares")
    rainfall_mm: float = Field(..., ge=0, description="Annual rainfall in mm")
    temperature_c: float = Field(..., description="Average temperature in °C")
    fertilizer_kg: float = Field(..., ge=0, description="Total fertilizer applied (kg, whole area)")


class YieldEstimateRequest(FieldConditions):
    decimals: Optional[int] = Field(None, ge=0, le=4, description="Rounding precision override")


class YieldEstimateResponse(BaseModel):
    crop: str
    tons_per_hectare: float
    crop_image: str = ""


class FertilizerPlanRequest(BaseModel):
    crop: str = Field(..., min_length=1)
    area_ha: float = Field(..., gt=0, description="Cultivated area in hectares")
    selected_product: Optional[str] = Field("urea", description="Primary fertilizer product id")


class FertilizerRecommendationSchema(BaseModel):
    product_name: str
    amount_kg: int = Field(ge=0)
    unit: str = "kg"
    purpose: str


class FertilizerPlanResponse(BaseModel):
    crop: str
    area_ha: float
    recommendations: List[FertilizerRecommendationSchema]


class FertilizerProductSchema(BaseModel):
    id: str
    label: str
    npk: str


class FertilizerProductListResponse(BaseModel):
    items: List[FertilizerProductSchema]
    total: int


class OptimizationRequest(FieldConditions):
    predicted_yield: float = Field(..., ge=0, description="Yield estimate in tons/ha")


class OptimizationSuggestionSchema(BaseModel):
    title: str
    description: str
    priority: PriorityEnum


class OptimizationResponse(BaseModel):
    suggestions: List[OptimizationSuggestionSchema] = Field(default_factory=list, max_length=4)


# ==================== PREDICTION SCHEMAS ====================

class FarmInputRequest(BaseModel):
    """
    Farm parameters for a combined prediction.

    When location is set, missing rainfall/temperature/soil type are taken
    from the location catalog. When fertilizer_kg is missing, the crop's
    nitrogen target times the area is used.
    """
    crop: str = Field(..., min_length=1)
    area_ha: float = Field(..., gt=0, description="Cultivated area in hectares")
    location: Optional[str] = Field(None, description="Catalog location name")
    rainfall_mm: Optional[float] = Field(None, ge=0)
    temperature_c: Optional[float] = None
    soil_type: Optional[str] = Field(None, max_length=50)
    fertilizer_kg: Optional[float] = Field(None, ge=0)
    selected_product: Optional[str] = Field("urea", description="Primary fertilizer product id")


class ResolvedFarmInput(BaseModel):
    crop: str
    area_ha: float
    location: Optional[str] = None
    rainfall_mm: float
    temperature_c: float
    soil_type: Optional[str] = None
    fertilizer_kg: float
    selected_product: Optional[str] = None


class PredictionResponse(BaseModel):
    crop: str
    crop_image: str
    yield_tons_per_ha: float
    inputs: ResolvedFarmInput
    fertilizer_recommendations: List[FertilizerRecommendationSchema]
    suggestions: List[OptimizationSuggestionSchema]


# ==================== SENSOR SCHEMAS ====================

class SensorThresholdSchema(BaseModel):
    min: float
    max: float


class SensorReadingSchema(BaseModel):
    id: str
    name: str
    value: float
    unit: str
    status: SensorStatusEnum
    threshold: SensorThresholdSchema


class SensorSummarySchema(BaseModel):
    active: int
    total: int
    alerts: int


class SensorSessionResponse(BaseModel):
    session_id: str
    running: bool
    tick_count: int
    readings: List[SensorReadingSchema]
    summary: SensorSummarySchema


# ==================== WEATHER SCHEMAS ====================

class WeatherResponse(BaseModel):
    location: str
    temperature_c: int
    humidity_pct: float
    wind_speed_kmh: int
    weather_code: int
    description: str
    fetched_at: datetime
