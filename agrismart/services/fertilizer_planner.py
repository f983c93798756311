"""
Fertilizer Planner Service.

Builds an ordered nutrient application plan (kg of each product) from the
crop's per-hectare N/P/K targets and the cultivated area:
- The selected product (when recognized) comes first, sized on 40% of N
- Then, always and in this order: phosphorus source, potassium source,
  nitrogen source for the remaining 60% of N, and a fixed-rate micronutrient

The plan is deterministic and independent of the predicted yield.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agrismart.core.config import FERTILIZER_PRODUCTS_PATH
from agrismart.services.agronomy_rules import FERTILIZER_UNIT, load_rule_table
from agrismart.services.validation import require_name, require_positive_area, round_to_int

logger = logging.getLogger(__name__)

DEFAULT_FERTILIZER_TABLE = {
    "products": [
        {"id": "urea", "label": "Urea (46-0-0)", "npk": "46-0-0"},
        {"id": "dap", "label": "DAP (18-46-0)", "npk": "18-46-0"},
        {"id": "mop", "label": "MOP (0-0-60)", "npk": "0-0-60"},
        {"id": "npk", "label": "NPK (19-19-19)", "npk": "19-19-19"},
        {"id": "ssp", "label": "SSP (0-16-0)", "npk": "0-16-0"},
        {"id": "organic", "label": "Organic Compost", "npk": "Variable"},
    ],
    "nutrient_targets_kg_ha": {
        "Rice": {"N": 120, "P": 60, "K": 40},
        "Wheat": {"N": 150, "P": 60, "K": 40},
        "Maize": {"N": 140, "P": 70, "K": 50},
    },
    "default_targets_kg_ha": {"N": 100, "P": 50, "K": 40},
    "selected_product": {"nutrient": "N", "share": 0.4, "purpose": "Primary nutrient source (selected)"},
    "complementary_products": [
        {"name": "DAP (18-46-0)", "nutrient": "P", "share": 1.0, "fraction": 0.46,
         "purpose": "Phosphorus for root development"},
        {"name": "MOP (0-0-60)", "nutrient": "K", "share": 1.0, "fraction": 0.60,
         "purpose": "Potassium for disease resistance"},
        {"name": "Urea (46-0-0)", "nutrient": "N", "share": 0.6, "fraction": 0.46,
         "purpose": "Nitrogen for vegetative growth"},
        {"name": "Zinc Sulphate", "fixed_rate_kg_ha": 25, "purpose": "Micronutrient supplementation"},
    ],
    "unit": FERTILIZER_UNIT,
}

_fertilizer_table_cache = None


def clear_fertilizer_table_cache():
    """Clear the cache to reload the fertilizer table on next call."""
    global _fertilizer_table_cache
    _fertilizer_table_cache = None


def load_fertilizer_table() -> Dict:
    """Load product catalog and nutrient targets from JSON file."""
    global _fertilizer_table_cache
    if _fertilizer_table_cache is None:
        _fertilizer_table_cache = load_rule_table(
            FERTILIZER_PRODUCTS_PATH, DEFAULT_FERTILIZER_TABLE, "fertilizer products"
        )
    return _fertilizer_table_cache


@dataclass(frozen=True)
class NutrientTargets:
    """Per-hectare nutrient targets in kg/ha."""
    n: float
    p: float
    k: float

    def get(self, nutrient: str) -> float:
        return {"N": self.n, "P": self.p, "K": self.k}[nutrient]


@dataclass(frozen=True)
class FertilizerProduct:
    """Catalog entry a user may pick as primary fertilizer."""
    id: str
    label: str
    npk: str


@dataclass(frozen=True)
class ComplementaryProduct:
    """
    Product always appended to the plan.

    Sized either on a nutrient target (target * share / fraction) or on a
    fixed per-hectare rate.
    """
    name: str
    purpose: str
    nutrient: Optional[str] = None
    share: float = 1.0
    fraction: float = 1.0
    fixed_rate_kg_ha: Optional[float] = None

    def rate_kg_ha(self, targets: NutrientTargets) -> float:
        if self.fixed_rate_kg_ha is not None:
            return self.fixed_rate_kg_ha
        return targets.get(self.nutrient) * self.share / self.fraction


@dataclass(frozen=True)
class FertilizerPlanConfig:
    products: Dict[str, FertilizerProduct]
    crop_targets: Dict[str, NutrientTargets]
    default_targets: NutrientTargets
    selected_nutrient: str
    selected_share: float
    selected_purpose: str
    complementary: List[ComplementaryProduct] = field(default_factory=list)
    unit: str = FERTILIZER_UNIT

    @classmethod
    def from_table(cls, table: Dict) -> "FertilizerPlanConfig":
        products = {
            p["id"].lower(): FertilizerProduct(id=p["id"].lower(), label=p["label"], npk=p.get("npk", ""))
            for p in table.get("products", [])
        }
        crop_targets = {
            crop: NutrientTargets(n=t["N"], p=t["P"], k=t["K"])
            for crop, t in table.get("nutrient_targets_kg_ha", {}).items()
        }
        default = table.get("default_targets_kg_ha", DEFAULT_FERTILIZER_TABLE["default_targets_kg_ha"])
        selected = table.get("selected_product", DEFAULT_FERTILIZER_TABLE["selected_product"])
        complementary = [
            ComplementaryProduct(
                name=c["name"],
                purpose=c.get("purpose", ""),
                nutrient=c.get("nutrient"),
                share=c.get("share", 1.0),
                fraction=c.get("fraction", 1.0),
                fixed_rate_kg_ha=c.get("fixed_rate_kg_ha"),
            )
            for c in table.get("complementary_products", [])
        ]
        return cls(
            products=products,
            crop_targets=crop_targets,
            default_targets=NutrientTargets(n=default["N"], p=default["P"], k=default["K"]),
            selected_nutrient=selected.get("nutrient", "N"),
            selected_share=selected.get("share", 0.4),
            selected_purpose=selected.get("purpose", "Primary nutrient source (selected)"),
            complementary=complementary,
            unit=table.get("unit", FERTILIZER_UNIT),
        )


@dataclass
class FertilizerRecommendation:
    """One line of the application plan."""
    product_name: str
    amount_kg: int
    purpose: str
    unit: str = FERTILIZER_UNIT


class FertilizerPlanner:
    """Stateless planner turning crop targets and area into product amounts."""

    def __init__(self, config: Optional[FertilizerPlanConfig] = None):
        self.config = config or FertilizerPlanConfig.from_table(load_fertilizer_table())

    def targets_for(self, crop: str) -> NutrientTargets:
        targets = self.config.crop_targets.get(crop)
        if targets is None:
            logger.debug(f"No nutrient targets for '{crop}', using defaults")
            return self.config.default_targets
        return targets

    def find_product(self, product_id: Optional[str]) -> Optional[FertilizerProduct]:
        if not product_id:
            return None
        return self.config.products.get(product_id.strip().lower())

    def list_products(self) -> List[FertilizerProduct]:
        return list(self.config.products.values())

    def default_fertilizer_kg(self, crop: str, area_ha: float) -> float:
        """Total N-target fertilizer for the field, used when no amount is given."""
        area_ha = require_positive_area(area_ha)
        return self.targets_for(crop).n * area_ha

    def plan(self, crop: str, area_ha: float, selected_product: Optional[str]) -> List[FertilizerRecommendation]:
        """
        Build the fertilizer plan for a field.

        Args:
            crop: Crop name; unknown crops use the default targets
            area_ha: Cultivated area in hectares (> 0)
            selected_product: Product id chosen by the user (e.g. 'urea', 'dap')

        Returns:
            Ordered recommendations; the selected product is first only when recognized
        """
        crop = require_name("crop", crop)
        area_ha = require_positive_area(area_ha)
        if selected_product is not None:
            selected_product = require_name("selected_product", selected_product)
        targets = self.targets_for(crop)
        recommendations: List[FertilizerRecommendation] = []

        product = self.find_product(selected_product)
        if product is not None:
            rate = targets.get(self.config.selected_nutrient) * self.config.selected_share
            recommendations.append(FertilizerRecommendation(
                product_name=product.label,
                amount_kg=round_to_int(rate * area_ha),
                purpose=self.config.selected_purpose,
                unit=self.config.unit,
            ))
        elif selected_product:
            logger.warning(f"Unknown fertilizer product '{selected_product}', skipping selected entry")

        # Same-named lines (selected DAP + complementary DAP) stay separate entries
        for comp in self.config.complementary:
            recommendations.append(FertilizerRecommendation(
                product_name=comp.name,
                amount_kg=round_to_int(comp.rate_kg_ha(targets) * area_ha),
                purpose=comp.purpose,
                unit=self.config.unit,
            ))

        return recommendations


# Singleton instance
fertilizer_planner = FertilizerPlanner()
