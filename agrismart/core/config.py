"""
Service settings.

Runtime knobs come from environment variables; agronomic rule tables
live as JSON files in agrismart/data so they can be tuned without
touching the services.
"""
import os

DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "data")

YIELD_MODEL_PATH = os.path.join(DATA_DIR, "yield_model.json")
FERTILIZER_PRODUCTS_PATH = os.path.join(DATA_DIR, "fertilizer_products.json")
ADVISOR_RULES_PATH = os.path.join(DATA_DIR, "advisor_rules.json")
SENSOR_CHANNELS_PATH = os.path.join(DATA_DIR, "sensor_channels.json")
LOCATIONS_PATH = os.path.join(DATA_DIR, "locations.json")

LOG_LEVEL = os.environ.get("AGRISMART_LOG_LEVEL", "INFO").upper()

SENSOR_TICK_SECONDS = float(os.environ.get("AGRISMART_SENSOR_TICK_SECONDS", "3"))
SENSOR_SESSION_TTL_SECONDS = float(os.environ.get("AGRISMART_SENSOR_SESSION_TTL_SECONDS", "600"))

WEATHER_API_URL = os.environ.get(
    "AGRISMART_WEATHER_API_URL", "https://api.open-meteo.com/v1/forecast"
)
WEATHER_TIMEZONE = os.environ.get("AGRISMART_WEATHER_TIMEZONE", "Asia/Kolkata")
WEATHER_TIMEOUT_SECONDS = float(os.environ.get("AGRISMART_WEATHER_TIMEOUT_SECONDS", "10"))
WEATHER_REFRESH_SECONDS = float(os.environ.get("AGRISMART_WEATHER_REFRESH_SECONDS", "300"))
WEATHER_MAX_RETRIES = int(os.environ.get("AGRISMART_WEATHER_MAX_RETRIES", "3"))
WEATHER_BACKOFF_SECONDS = float(os.environ.get("AGRISMART_WEATHER_BACKOFF_SECONDS", "1.0"))
