"""
Deterministic agronomic constants and rule-table loading.

Thresholds that control decision logic live in the JSON tables under
agrismart/data; this module holds the vocabulary shared by the services
and the loader used to read those tables.
"""
import json
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
PRIORITIES = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)

STATUS_GOOD = "good"
STATUS_WARNING = "warning"
STATUS_CRITICAL = "critical"

SUPPORTED_CROPS = ("Rice", "Wheat", "Maize", "Sugarcane", "Cotton(lint)")

FERTILIZER_UNIT = "kg"


def load_rule_table(path: str, fallback: Dict[str, Any], label: str) -> Dict[str, Any]:
    """
    Load a JSON rule table, falling back to built-in defaults.

    Args:
        path: Absolute path to the JSON file
        fallback: Table returned when the file is missing or malformed
        label: Human readable name used in log messages

    Returns:
        Parsed table (dict)
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            table = json.load(f)
            logger.debug(f"Loaded {label} from {path}")
            return table
    except Exception as e:
        logger.error(f"Error loading {label}: {e}")
        return fallback
