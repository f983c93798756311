"""
Weather service tests against httpx.MockTransport; backoff sleeps are
recorded instead of awaited.
"""
import asyncio

import httpx
import pytest

from agrismart.services.location_catalog import UnknownLocationError
from agrismart.services.weather_service import (
    WeatherMonitor,
    WeatherReading,
    WeatherService,
    WeatherServiceError,
    describe_weather_code,
)

CURRENT_PAYLOAD = {
    "current": {
        "temperature_2m": 27.5,
        "relative_humidity_2m": 61,
        "wind_speed_10m": 12.4,
        "weather_code": 61,
    }
}


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_service(handler, sleep=None, max_retries=3):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WeatherService(
        client=client,
        base_url="https://weather.test/v1/forecast",
        max_retries=max_retries,
        backoff_seconds=1.0,
        sleep=sleep or RecordingSleep(),
    )


class TestDescribeWeatherCode:

    @pytest.mark.parametrize("code, description", [
        (0, "Clear sky"),
        (2, "Partly cloudy"),
        (3, "Partly cloudy"),
        (45, "Foggy"),
        (61, "Rainy"),
        (71, "Snowy"),
        (80, "Rain showers"),
        (95, "Thunderstorm"),
    ])
    def test_codes(self, code, description):
        assert describe_weather_code(code) == description


class TestFetch:

    def test_fetch_for_location(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=CURRENT_PAYLOAD)

        service = make_service(handler)
        reading = asyncio.run(service.fetch_for_location("kanpur"))

        assert reading.location == "Kanpur"
        assert reading.temperature_c == 28
        assert reading.wind_speed_kmh == 12
        assert reading.humidity_pct == 61
        assert reading.description == "Rainy"
        params = requests[0].url.params
        assert params["latitude"] == "26.45"
        assert params["timezone"] == "Asia/Kolkata"
        assert "weather_code" in params["current"]

    def test_retries_with_exponential_backoff(self):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            if calls["count"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=CURRENT_PAYLOAD)

        sleep = RecordingSleep()
        service = make_service(handler, sleep=sleep)
        reading = asyncio.run(service.fetch_current("Kanpur", 26.45, 80.35))

        assert reading.temperature_c == 28
        assert calls["count"] == 3
        assert sleep.delays == [1.0, 2.0]

    def test_gives_up_after_max_retries(self, caplog):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            return httpx.Response(500)

        sleep = RecordingSleep()
        service = make_service(handler, sleep=sleep, max_retries=3)
        with pytest.raises(WeatherServiceError):
            asyncio.run(service.fetch_current("Kanpur", 26.45, 80.35))

        assert calls["count"] == 3
        assert sleep.delays == [1.0, 2.0]
        assert "failed after 3 attempt(s)" in caplog.text

    def test_connection_errors_are_retried(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        sleep = RecordingSleep()
        service = make_service(handler, sleep=sleep, max_retries=2)
        with pytest.raises(WeatherServiceError):
            asyncio.run(service.fetch_current("Kanpur", 26.45, 80.35))
        assert sleep.delays == [1.0]

    def test_missing_current_block_is_not_retried(self):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            return httpx.Response(200, json={"latitude": 26.45})

        service = make_service(handler)
        with pytest.raises(WeatherServiceError):
            asyncio.run(service.fetch_current("Kanpur", 26.45, 80.35))
        assert calls["count"] == 1

    def test_malformed_current_block(self):
        def handler(request):
            return httpx.Response(200, json={"current": {"temperature_2m": 20}})

        service = make_service(handler)
        with pytest.raises(WeatherServiceError):
            asyncio.run(service.fetch_current("Kanpur", 26.45, 80.35))

    def test_unknown_location(self):
        service = make_service(lambda request: httpx.Response(200, json=CURRENT_PAYLOAD))
        with pytest.raises(UnknownLocationError):
            asyncio.run(service.fetch_for_location("Atlantis"))


class TestMonitor:

    def test_track_refreshes_in_background(self):
        async def scenario():
            service = make_service(lambda request: httpx.Response(200, json=CURRENT_PAYLOAD))
            monitor = WeatherMonitor(service, refresh_seconds=0.01)
            monitor.track("Kanpur")
            monitor.track("Kanpur")
            assert monitor.is_tracking("Kanpur")
            await asyncio.sleep(0.1)
            latest = monitor.latest("Kanpur")
            await monitor.stop()
            return monitor, latest

        monitor, latest = asyncio.run(scenario())
        assert latest is not None
        assert latest.temperature_c == 28
        assert not monitor.is_tracking("Kanpur")

    def test_lookup_ignores_surrounding_whitespace(self):
        service = make_service(lambda request: httpx.Response(200, json=CURRENT_PAYLOAD))
        monitor = WeatherMonitor(service, refresh_seconds=60)
        reading = WeatherReading(
            location="Kanpur",
            temperature_c=30,
            humidity_pct=50,
            wind_speed_kmh=5,
            weather_code=0,
            description="Clear sky",
            fetched_at=None,
        )
        monitor.store(reading)
        assert monitor.latest("  kanpur ") is reading
        assert monitor.latest("KANPUR") is reading

    def test_failed_refresh_keeps_previous_reading(self, caplog):
        async def scenario():
            service = make_service(lambda request: httpx.Response(500), max_retries=1)
            monitor = WeatherMonitor(service, refresh_seconds=0.01)
            previous = WeatherReading(
                location="Kanpur",
                temperature_c=30,
                humidity_pct=50,
                wind_speed_kmh=5,
                weather_code=0,
                description="Clear sky",
                fetched_at=None,
            )
            monitor.store(previous)
            monitor.track("Kanpur")
            await asyncio.sleep(0.05)
            latest = monitor.latest("kanpur")
            await monitor.stop()
            return previous, latest

        previous, latest = asyncio.run(scenario())
        assert latest is previous
        assert "Keeping previous weather for Kanpur" in caplog.text
