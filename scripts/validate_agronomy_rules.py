#!/usr/bin/env python3
"""
Agronomy Rules Validation Script
Runs randomized field scenarios through the estimator, planner and advisor
and reports any invariant violation.
"""
import sys
import os
import random
import json
from typing import Dict, Any, List

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from agrismart.services.agronomy_rules import PRIORITIES, STATUS_CRITICAL
from agrismart.services.crop_prediction_service import CropPredictionService, FarmInput
from agrismart.services.fertilizer_planner import FertilizerPlanner
from agrismart.services.location_catalog import location_catalog
from agrismart.services.optimization_advisor import AdvisorContext, OptimizationAdvisor
from agrismart.services.sensor_simulator import SensorSimulator
from agrismart.services.yield_estimator import YieldEstimator

CROPS = ["Rice", "Wheat", "Maize", "Sugarcane", "Cotton(lint)", "Cotton", "Barley"]
PRODUCTS = ["urea", "dap", "mop", "npk", "ssp", "organic", "DAP", "guano", None]
AREAS = [0.2, 0.5, 1, 2, 5, 10, 25, 60, 120]

RULE_GROUPS = [
    {"Implement Drip Irrigation", "Improve Drainage Systems"},
    {"Consider Cold-Resistant Varieties", "Apply Shade Nets & Mulching"},
    {"Increase Fertilizer Application", "Reduce Fertilizer to Prevent Burning"},
]


def random_farm_input(rng: random.Random) -> FarmInput:
    area = rng.choice(AREAS)
    use_location = rng.random() < 0.3
    return FarmInput(
        crop=rng.choice(CROPS),
        area_ha=area,
        location=rng.choice(location_catalog.names()) if use_location else None,
        rainfall_mm=None if use_location else rng.uniform(0, 3500),
        temperature_c=None if use_location else rng.uniform(-5, 48),
        fertilizer_kg=None if rng.random() < 0.2 else rng.uniform(0, 450) * area,
        selected_product=rng.choice(PRODUCTS),
    )


def check_prediction(prediction, farm_input: FarmInput, planner: FertilizerPlanner, upper_bound: float) -> List[str]:
    issues = []

    if not 0.1 <= prediction.yield_tons_per_ha <= upper_bound + 0.05:
        issues.append(f"Yield {prediction.yield_tons_per_ha} outside [0.1, {upper_bound:.2f}]")

    recs = prediction.fertilizer_recommendations
    for rec in recs:
        if not isinstance(rec.amount_kg, int) or rec.amount_kg < 0:
            issues.append(f"{rec.product_name}: amount {rec.amount_kg!r} is not a non-negative integer")

    recognized = planner.find_product(farm_input.selected_product) is not None
    selected_first = bool(recs) and recs[0].purpose == planner.config.selected_purpose
    if recognized != selected_first:
        issues.append(f"Selected product '{farm_input.selected_product}' first={selected_first}, recognized={recognized}")
    expected_lines = len(planner.config.complementary) + (1 if recognized else 0)
    if len(recs) != expected_lines:
        issues.append(f"Plan has {len(recs)} lines, expected {expected_lines}")

    suggestions = prediction.suggestions
    if len(suggestions) > 4:
        issues.append(f"{len(suggestions)} suggestions returned")
    titles = {s.title for s in suggestions}
    for group in RULE_GROUPS:
        if len(group & titles) > 1:
            issues.append(f"Rule group emitted more than one suggestion: {sorted(group & titles)}")
    for s in suggestions:
        if s.priority not in PRIORITIES:
            issues.append(f"Unknown priority '{s.priority}' on '{s.title}'")

    return issues


def check_sensors(rng: random.Random, ticks: int) -> List[str]:
    issues = []
    simulator = SensorSimulator(rng=rng)
    for tick in range(ticks):
        for reading in simulator.tick():
            channel = simulator._channels[reading.id]
            if not channel.clamp_min <= reading.value <= channel.clamp_max:
                issues.append(f"Tick {tick + 1}: {reading.id}={reading.value} outside clamp range")
            outside = reading.value < reading.threshold.min or reading.value > reading.threshold.max
            if outside != (reading.status == STATUS_CRITICAL):
                issues.append(f"Tick {tick + 1}: {reading.id}={reading.value} classified {reading.status}")
    return issues


def run_validation(num_tests: int = 500, seed: int = 42) -> Dict[str, Any]:
    rng = random.Random(seed)
    estimator = YieldEstimator(rng=random.Random(seed + 1))
    planner = FertilizerPlanner()
    service = CropPredictionService(estimator=estimator, planner=planner, advisor=OptimizationAdvisor())
    upper_bound = estimator.upper_bound()

    anomalies = []
    stats = {
        "total_tests": num_tests,
        "successful": 0,
        "failed": 0,
        "anomalies": 0,
        "suggestions_truncated": 0,
        "selected_product_recognized": 0,
        "yield_min": None,
        "yield_max": None,
    }

    for i in range(num_tests):
        farm_input = random_farm_input(rng)
        try:
            prediction = service.predict(farm_input)
        except Exception as e:
            stats["failed"] += 1
            anomalies.append({"test_id": i + 1, "input": vars(farm_input), "issue": "Calculation error", "error": str(e)})
            continue

        issues = check_prediction(prediction, farm_input, planner, upper_bound)
        if issues:
            stats["failed"] += 1
            anomalies.append({"test_id": i + 1, "input": vars(farm_input), "issues": issues})
        else:
            stats["successful"] += 1

        resolved = prediction.inputs
        ctx = AdvisorContext(
            resolved.crop, resolved.area_ha, resolved.rainfall_mm,
            resolved.temperature_c, resolved.fertilizer_kg, prediction.yield_tons_per_ha,
        )
        generated = service.advisor.generate_all(ctx)
        if len(generated) > len(prediction.suggestions):
            stats["suggestions_truncated"] += 1
        if planner.find_product(farm_input.selected_product) is not None:
            stats["selected_product_recognized"] += 1

        y = prediction.yield_tons_per_ha
        stats["yield_min"] = y if stats["yield_min"] is None else min(stats["yield_min"], y)
        stats["yield_max"] = y if stats["yield_max"] is None else max(stats["yield_max"], y)

    sensor_issues = check_sensors(random.Random(seed + 2), ticks=num_tests * 2)
    for issue in sensor_issues:
        anomalies.append({"issue": issue})

    stats["anomalies"] = len(anomalies)
    stats["yield_upper_bound"] = round(upper_bound, 3)
    return {"stats": stats, "anomalies": anomalies}


def generate_report(validation: Dict) -> str:
    stats = validation["stats"]
    anomalies = validation["anomalies"]

    report = []
    report.append("=" * 80)
    report.append("VALIDATION REPORT - AGRONOMY RULES")
    report.append("=" * 80)
    report.append("")

    report.append("## SUMMARY")
    report.append("-" * 40)
    report.append(f"Total scenarios: {stats['total_tests']}")
    report.append(f"Passed: {stats['successful']}")
    report.append(f"Failed: {stats['failed']}")
    report.append(f"Anomalies: {stats['anomalies']}")
    report.append(f"Suggestion lists truncated at 4: {stats['suggestions_truncated']}")
    report.append(f"Recognized selected product: {stats['selected_product_recognized']}")
    report.append(
        f"Yield range: {stats['yield_min']} - {stats['yield_max']} t/ha "
        f"(model bound {stats['yield_upper_bound']})"
    )
    report.append("")

    if anomalies:
        report.append("## ANOMALIES")
        report.append("-" * 40)
        for anomaly in anomalies[:25]:
            report.append(json.dumps(anomaly, default=str))
        if len(anomalies) > 25:
            report.append(f"... {len(anomalies) - 25} more")
    else:
        report.append("✓ All invariants hold.")

    report.append("")
    report.append("=" * 80)
    return "\n".join(report)


if __name__ == "__main__":
    print("Running agronomy rules validation (500 scenarios)...")
    print("")

    validation = run_validation(num_tests=500, seed=42)
    print(generate_report(validation))

    with open("agronomy_validation_data.json", "w", encoding="utf-8") as f:
        json.dump(validation, f, indent=2, ensure_ascii=False, default=str)

    sys.exit(1 if validation["stats"]["anomalies"] else 0)
