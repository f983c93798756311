"""
AgriSmart Router.
Endpoints for yield estimation, fertilizer planning, optimization advice,
sensor simulation sessions and live weather.
"""
from typing import Callable, Dict, Optional
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from agrismart.schemas.agrismart_schemas import (
    FarmInputRequest,
    FertilizerPlanRequest,
    FertilizerPlanResponse,
    FertilizerProductListResponse,
    FertilizerProductSchema,
    FertilizerRecommendationSchema,
    LocationListResponse,
    LocationResponse,
    OptimizationRequest,
    OptimizationResponse,
    OptimizationSuggestionSchema,
    PredictionResponse,
    ResolvedFarmInput,
    SensorReadingSchema,
    SensorSessionResponse,
    SensorSummarySchema,
    SensorThresholdSchema,
    WeatherResponse,
    YieldEstimateRequest,
    YieldEstimateResponse,
)
from agrismart.services.crop_prediction_service import (
    CropPrediction,
    CropPredictionService,
    FarmInput,
    crop_prediction_service,
)
from agrismart.services.fertilizer_planner import FertilizerPlanner, fertilizer_planner
from agrismart.services.location_catalog import (
    Location,
    LocationCatalog,
    UnknownLocationError,
    location_catalog,
)
from agrismart.services.optimization_advisor import OptimizationAdvisor, optimization_advisor
from agrismart.services.report_excel_service import prediction_excel_service
from agrismart.services.report_pdf_service import prediction_pdf_service
from agrismart.services.sensor_simulator import (
    SensorSessionNotFoundError,
    SensorSessionRegistry,
    SensorSimulator,
)
from agrismart.services.validation import InvalidInputError
from agrismart.services.weather_service import (
    WeatherMonitor,
    WeatherReading,
    WeatherService,
    WeatherServiceError,
)
from agrismart.services.yield_estimator import YieldEstimator, yield_estimator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agrismart", tags=["agrismart"])


# ============== Dependencies ==============

_sensor_registry: Optional[SensorSessionRegistry] = None
_weather_service: Optional[WeatherService] = None
_weather_monitor: Optional[WeatherMonitor] = None


def get_yield_estimator() -> YieldEstimator:
    return yield_estimator


def get_fertilizer_planner() -> FertilizerPlanner:
    return fertilizer_planner


def get_optimization_advisor() -> OptimizationAdvisor:
    return optimization_advisor


def get_location_catalog() -> LocationCatalog:
    return location_catalog


def get_prediction_service() -> CropPredictionService:
    return crop_prediction_service


def get_sensor_registry() -> SensorSessionRegistry:
    global _sensor_registry
    if _sensor_registry is None:
        _sensor_registry = SensorSessionRegistry()
    return _sensor_registry


def get_weather_service() -> WeatherService:
    global _weather_service
    if _weather_service is None:
        _weather_service = WeatherService()
    return _weather_service


def get_weather_monitor() -> WeatherMonitor:
    global _weather_monitor
    if _weather_monitor is None:
        _weather_monitor = WeatherMonitor(get_weather_service())
    return _weather_monitor


async def shutdown_services(overrides: Optional[Dict[Callable, Callable]] = None):
    """
    Stop sensor sessions and weather refreshes, close the HTTP client.

    Providers overridden on the app (tests) are shut down instead of the
    module-level instances.
    """
    global _sensor_registry, _weather_service, _weather_monitor
    overrides = overrides or {}

    def resolve(provider, current):
        override = overrides.get(provider)
        return override() if override is not None else current

    registry = resolve(get_sensor_registry, _sensor_registry)
    monitor = resolve(get_weather_monitor, _weather_monitor)
    service = resolve(get_weather_service, _weather_service)
    if registry is not None:
        await registry.stop_all()
    if monitor is not None:
        await monitor.stop()
    if service is not None:
        await service.aclose()
    _sensor_registry = _weather_service = _weather_monitor = None


# ============== Helpers ==============

def _bad_request(e: InvalidInputError) -> HTTPException:
    logger.warning(f"Rejected request: {e}")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _location_not_found(name: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Location '{name}' not found")


def _session_not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Sensor session '{session_id}' not found")


def _location_response(location: Location) -> LocationResponse:
    return LocationResponse(
        name=location.name,
        rainfall_mm=location.rainfall_mm,
        avg_temp_c=location.avg_temp_c,
        soil_type=location.soil_type,
        latitude=location.latitude,
        longitude=location.longitude,
    )


def _recommendation_schemas(recommendations) -> list:
    return [
        FertilizerRecommendationSchema(
            product_name=r.product_name,
            amount_kg=r.amount_kg,
            unit=r.unit,
            purpose=r.purpose,
        )
        for r in recommendations
    ]


def _suggestion_schemas(suggestions) -> list:
    return [
        OptimizationSuggestionSchema(title=s.title, description=s.description, priority=s.priority)
        for s in suggestions
    ]


def _prediction_response(prediction: CropPrediction) -> PredictionResponse:
    inputs = prediction.inputs
    return PredictionResponse(
        crop=prediction.crop,
        crop_image=prediction.crop_image,
        yield_tons_per_ha=prediction.yield_tons_per_ha,
        inputs=ResolvedFarmInput(
            crop=inputs.crop,
            area_ha=inputs.area_ha,
            location=inputs.location,
            rainfall_mm=inputs.rainfall_mm,
            temperature_c=inputs.temperature_c,
            soil_type=inputs.soil_type,
            fertilizer_kg=inputs.fertilizer_kg,
            selected_product=inputs.selected_product,
        ),
        fertilizer_recommendations=_recommendation_schemas(prediction.fertilizer_recommendations),
        suggestions=_suggestion_schemas(prediction.suggestions),
    )


def _session_response(session_id: str, simulator: SensorSimulator) -> SensorSessionResponse:
    readings = simulator.read()
    summary = simulator.summarize()
    return SensorSessionResponse(
        session_id=session_id,
        running=simulator.is_running,
        tick_count=simulator.tick_count,
        readings=[
            SensorReadingSchema(
                id=r.id,
                name=r.name,
                value=r.value,
                unit=r.unit,
                status=r.status,
                threshold=SensorThresholdSchema(min=r.threshold.min, max=r.threshold.max),
            )
            for r in readings
        ],
        summary=SensorSummarySchema(active=summary.active, total=summary.total, alerts=summary.alerts),
    )


def _weather_response(reading: WeatherReading) -> WeatherResponse:
    return WeatherResponse(
        location=reading.location,
        temperature_c=reading.temperature_c,
        humidity_pct=reading.humidity_pct,
        wind_speed_kmh=reading.wind_speed_kmh,
        weather_code=reading.weather_code,
        description=reading.description,
        fetched_at=reading.fetched_at,
    )


def _run_prediction(request: FarmInputRequest, service: CropPredictionService) -> CropPrediction:
    farm_input = FarmInput(
        crop=request.crop,
        area_ha=request.area_ha,
        rainfall_mm=request.rainfall_mm,
        temperature_c=request.temperature_c,
        fertilizer_kg=request.fertilizer_kg,
        selected_product=request.selected_product,
        location=request.location,
        soil_type=request.soil_type,
    )
    try:
        return service.predict(farm_input)
    except UnknownLocationError:
        raise _location_not_found(request.location)
    except InvalidInputError as e:
        raise _bad_request(e)


def _report_filename(prediction: CropPrediction, extension: str) -> str:
    crop_slug = re.sub(r"[^A-Za-z0-9]+", "_", prediction.crop).strip("_").lower() or "crop"
    return f"agrismart_{crop_slug}_report.{extension}"


# ============== Catalog Endpoints ==============

@router.get("/locations", response_model=LocationListResponse)
async def list_locations(catalog: LocationCatalog = Depends(get_location_catalog)):
    """List districts with climate and soil defaults."""
    items = [_location_response(loc) for loc in catalog.all()]
    return LocationListResponse(items=items, total=len(items))


@router.get("/locations/{name}", response_model=LocationResponse)
async def get_location(name: str, catalog: LocationCatalog = Depends(get_location_catalog)):
    try:
        return _location_response(catalog.get(name))
    except UnknownLocationError:
        raise _location_not_found(name)


@router.get("/fertilizers", response_model=FertilizerProductListResponse)
async def list_fertilizers(planner: FertilizerPlanner = Depends(get_fertilizer_planner)):
    items = [FertilizerProductSchema(id=p.id, label=p.label, npk=p.npk) for p in planner.list_products()]
    return FertilizerProductListResponse(items=items, total=len(items))


# ============== Estimation Endpoints ==============

@router.post("/yield/estimate", response_model=YieldEstimateResponse)
async def estimate_yield(
    request: YieldEstimateRequest,
    estimator: YieldEstimator = Depends(get_yield_estimator),
):
    """Standalone yield estimate in tons/ha (2 decimals unless overridden)."""
    try:
        prediction = estimator.predict(
            request.crop,
            request.rainfall_mm,
            request.temperature_c,
            request.fertilizer_kg,
            request.area_ha,
            decimals=request.decimals,
        )
    except InvalidInputError as e:
        raise _bad_request(e)
    return YieldEstimateResponse(
        crop=prediction.crop,
        tons_per_hectare=prediction.tons_per_hectare,
        crop_image=prediction.crop_image,
    )


@router.post("/fertilizer-plan", response_model=FertilizerPlanResponse)
async def plan_fertilizer(
    request: FertilizerPlanRequest,
    planner: FertilizerPlanner = Depends(get_fertilizer_planner),
):
    try:
        recommendations = planner.plan(request.crop, request.area_ha, request.selected_product)
    except InvalidInputError as e:
        raise _bad_request(e)
    return FertilizerPlanResponse(
        crop=request.crop,
        area_ha=request.area_ha,
        recommendations=_recommendation_schemas(recommendations),
    )


@router.post("/optimizations", response_model=OptimizationResponse)
async def advise(
    request: OptimizationRequest,
    advisor: OptimizationAdvisor = Depends(get_optimization_advisor),
):
    """Rule-based suggestions in rule order, at most four."""
    try:
        suggestions = advisor.advise(
            request.crop,
            request.area_ha,
            request.rainfall_mm,
            request.temperature_c,
            request.fertilizer_kg,
            request.predicted_yield,
        )
    except InvalidInputError as e:
        raise _bad_request(e)
    return OptimizationResponse(suggestions=_suggestion_schemas(suggestions))


@router.post("/predict", response_model=PredictionResponse)
async def predict(
    request: FarmInputRequest,
    service: CropPredictionService = Depends(get_prediction_service),
):
    """
    Combined prediction: yield, fertilizer plan and optimization suggestions.
    Missing rainfall/temperature are taken from the named location.
    """
    return _prediction_response(_run_prediction(request, service))


@router.post("/predict/excel")
async def export_prediction_excel(
    request: FarmInputRequest,
    service: CropPredictionService = Depends(get_prediction_service),
):
    prediction = _run_prediction(request, service)
    buffer = prediction_excel_service.generate_prediction_excel(prediction)
    filename = _report_filename(prediction, "xlsx")
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        }
    )


@router.post("/predict/pdf")
async def export_prediction_pdf(
    request: FarmInputRequest,
    service: CropPredictionService = Depends(get_prediction_service),
):
    prediction = _run_prediction(request, service)
    buffer = prediction_pdf_service.generate_prediction_pdf(prediction)
    filename = _report_filename(prediction, "pdf")
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        }
    )


# ============== Sensor Endpoints ==============

@router.post("/sensors/sessions", response_model=SensorSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_sensor_session(registry: SensorSessionRegistry = Depends(get_sensor_registry)):
    """Start a simulated sensor network ticking in the background."""
    session_id, simulator = await registry.create()
    return _session_response(session_id, simulator)


@router.get("/sensors/sessions/{session_id}", response_model=SensorSessionResponse)
async def read_sensor_session(
    session_id: str,
    registry: SensorSessionRegistry = Depends(get_sensor_registry),
):
    try:
        simulator = registry.get(session_id)
    except SensorSessionNotFoundError:
        raise _session_not_found(session_id)
    return _session_response(session_id, simulator)


@router.delete("/sensors/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def stop_sensor_session(
    session_id: str,
    registry: SensorSessionRegistry = Depends(get_sensor_registry),
):
    try:
        await registry.stop(session_id)
    except SensorSessionNotFoundError:
        raise _session_not_found(session_id)


# ============== Weather Endpoint ==============

@router.get("/weather/{location}", response_model=WeatherResponse)
async def get_weather(
    location: str,
    service: WeatherService = Depends(get_weather_service),
    monitor: WeatherMonitor = Depends(get_weather_monitor),
):
    """
    Current weather for a catalog location.

    The first request fetches synchronously and starts a background refresh;
    later requests are served from the monitor's last good reading.
    """
    cached = monitor.latest(location)
    if cached is not None:
        return _weather_response(cached)
    try:
        reading = await service.fetch_for_location(location)
    except UnknownLocationError:
        raise _location_not_found(location)
    except WeatherServiceError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    monitor.store(reading)
    monitor.track(reading.location)
    return _weather_response(reading)
