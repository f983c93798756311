"""
Sensor simulator tests.

Ticks are driven directly for determinism; the asyncio timer and the
session registry are exercised with asyncio.run and short tick periods.
"""
import asyncio

import pytest

from agrismart.services.sensor_simulator import (
    SensorNetworkConfig,
    SensorSessionNotFoundError,
    SensorSessionRegistry,
    SensorSimulator,
    SensorThreshold,
    classify_status,
    load_sensor_table,
)


def by_id(readings):
    return {r.id: r for r in readings}


class TestClassifyStatus:

    @pytest.mark.parametrize("value, expected", [
        (14.9, "critical"),
        (30.1, "critical"),
        (15, "warning"),
        (19.9, "warning"),
        (25.1, "warning"),
        (30, "warning"),
        (20, "good"),
        (25, "good"),
    ])
    def test_soil_temperature_band(self, value, expected):
        assert classify_status(value, SensorThreshold(15, 30), 5) == expected

    @pytest.mark.parametrize("value", [6.0, 6.8, 7.5])
    def test_ph_inside_band_is_always_warning(self, value):
        # margin 5 swallows the whole 6.0-7.5 band
        assert classify_status(value, SensorThreshold(6, 7.5), 5) == "warning"

    @pytest.mark.parametrize("value", [5.9, 7.6])
    def test_ph_outside_band_is_critical(self, value):
        assert classify_status(value, SensorThreshold(6, 7.5), 5) == "critical"


class TestInitialState:

    def test_four_channels_with_seeds(self):
        readings = by_id(SensorSimulator().read())
        assert list(readings) == ["soil-temp", "soil-moisture", "air-humidity", "soil-ph"]
        assert readings["soil-temp"].value == 24
        assert readings["soil-moisture"].value == 65
        assert readings["air-humidity"].value == 58
        assert readings["soil-ph"].value == 6.8
        assert readings["soil-ph"].unit == "pH"

    def test_initial_status_is_classified(self):
        readings = by_id(SensorSimulator().read())
        assert readings["soil-temp"].status == "good"
        assert readings["soil-moisture"].status == "good"
        assert readings["air-humidity"].status == "good"
        assert readings["soil-ph"].status == "warning"

    def test_initial_summary(self):
        summary = SensorSimulator().summarize()
        assert (summary.active, summary.total, summary.alerts) == (4, 4, 1)


class TestTick:

    def test_upper_perturbation(self, make_rng):
        simulator = SensorSimulator(rng=make_rng(1.0))
        readings = by_id(simulator.tick())
        assert readings["soil-temp"].value == 26.5
        assert readings["soil-moisture"].value == 67.5
        assert readings["air-humidity"].value == 60.5
        assert readings["soil-ph"].value == 6.9
        assert readings["soil-temp"].status == "warning"
        assert simulator.tick_count == 1

    def test_lower_perturbation(self, make_rng):
        simulator = SensorSimulator(rng=make_rng(0.0))
        readings = by_id(simulator.tick())
        assert readings["soil-temp"].value == 21.5
        assert readings["soil-ph"].value == 6.7
        assert readings["soil-temp"].status == "good"

    def test_values_clamp_at_upper_bound(self, make_rng):
        simulator = SensorSimulator(rng=make_rng(1.0))
        for _ in range(40):
            simulator.tick()
        readings = by_id(simulator.read())
        assert readings["soil-moisture"].value == 100
        assert readings["soil-ph"].value == 8
        assert readings["soil-moisture"].status == "critical"
        assert readings["soil-ph"].status == "critical"
        assert simulator.summarize().alerts == 4

    def test_values_clamp_at_lower_bound(self, make_rng):
        simulator = SensorSimulator(rng=make_rng(0.0))
        for _ in range(40):
            simulator.tick()
        readings = by_id(simulator.read())
        assert readings["soil-temp"].value == 0
        assert readings["soil-ph"].value == 5

    def test_seeded_walk_stays_in_domain(self, seeded_rng):
        simulator = SensorSimulator(rng=seeded_rng)
        for _ in range(1000):
            for reading in simulator.tick():
                if reading.id == "soil-ph":
                    assert 5 <= reading.value <= 8
                else:
                    assert 0 <= reading.value <= 100
                assert reading.value == round(reading.value, 1)
                outside = reading.value < reading.threshold.min or reading.value > reading.threshold.max
                assert (reading.status == "critical") == outside

    def test_tick_replaces_snapshot(self, make_rng):
        simulator = SensorSimulator(rng=make_rng(1.0))
        before = simulator.read()
        after = simulator.tick()
        assert before is not after
        assert by_id(before)["soil-temp"].value == 24

    def test_channels_evolve_independently(self, make_rng):
        config = SensorNetworkConfig.from_table(load_sensor_table())
        single = SensorNetworkConfig(channels=config.channels[:1])
        solo = by_id(SensorSimulator(config=single, rng=make_rng(1.0)).tick())
        full = by_id(SensorSimulator(config=config, rng=make_rng(1.0)).tick())
        assert solo["soil-temp"] == full["soil-temp"]


class TestTimer:

    def test_start_ticks_and_stop_cancels(self):
        async def scenario():
            simulator = SensorSimulator(tick_seconds=0.01)
            await simulator.start()
            assert simulator.is_running
            await asyncio.sleep(0.1)
            await simulator.stop()
            ticks = simulator.tick_count
            await asyncio.sleep(0.05)
            return simulator, ticks

        simulator, ticks = asyncio.run(scenario())
        assert ticks >= 1
        assert simulator.tick_count == ticks
        assert not simulator.is_running

    def test_start_is_idempotent(self):
        async def scenario():
            simulator = SensorSimulator(tick_seconds=10)
            await simulator.start()
            task = simulator._task
            await simulator.start()
            same = simulator._task is task
            await simulator.stop()
            return same

        assert asyncio.run(scenario())

    def test_stop_without_start(self):
        simulator = SensorSimulator()
        asyncio.run(simulator.stop())
        assert not simulator.is_running


class TestSessionRegistry:

    def test_create_get_stop(self):
        async def scenario():
            registry = SensorSessionRegistry(lambda: SensorSimulator(tick_seconds=10))
            session_id, simulator = await registry.create()
            assert registry.get(session_id) is simulator
            assert simulator.is_running
            assert len(registry) == 1
            await registry.stop(session_id)
            assert not simulator.is_running
            assert len(registry) == 0
            with pytest.raises(SensorSessionNotFoundError):
                registry.get(session_id)
            with pytest.raises(SensorSessionNotFoundError):
                await registry.stop(session_id)

        asyncio.run(scenario())

    def test_sessions_are_independent(self):
        async def scenario():
            registry = SensorSessionRegistry(lambda: SensorSimulator(tick_seconds=10))
            first_id, first = await registry.create()
            second_id, second = await registry.create()
            assert first_id != second_id
            first.tick()
            assert first.tick_count == 1
            assert second.tick_count == 0
            await registry.stop_all()
            assert len(registry) == 0
            assert not first.is_running and not second.is_running

        asyncio.run(scenario())


class ManualClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSessionExpiry:

    def test_idle_sessions_are_reaped(self):
        async def scenario():
            clock = ManualClock()
            registry = SensorSessionRegistry(
                lambda: SensorSimulator(tick_seconds=10), ttl_seconds=30, clock=clock,
            )
            active_id, active = await registry.create()
            idle_id, idle = await registry.create()
            clock.now = 20
            registry.get(active_id)
            clock.now = 40
            expired = await registry.reap_idle()
            assert expired == [idle_id]
            assert len(registry) == 1
            assert not idle.is_running
            assert active.is_running
            with pytest.raises(SensorSessionNotFoundError):
                registry.get(idle_id)
            await registry.stop_all()

        asyncio.run(scenario())

    def test_create_reaps_abandoned_sessions(self):
        async def scenario():
            clock = ManualClock()
            registry = SensorSessionRegistry(
                lambda: SensorSimulator(tick_seconds=10), ttl_seconds=30, clock=clock,
            )
            for _ in range(500):
                await registry.create()
            assert len(registry) == 500
            clock.now = 31
            await registry.create()
            count = len(registry)
            await registry.stop_all()
            return count

        assert asyncio.run(scenario()) == 1

    def test_background_reaper_stops_idle_sessions(self):
        async def scenario():
            registry = SensorSessionRegistry(lambda: SensorSimulator(tick_seconds=10), ttl_seconds=0.02)
            _, simulator = await registry.create()
            assert registry.is_reaping
            await asyncio.sleep(0.2)
            return registry, simulator

        registry, simulator = asyncio.run(scenario())
        assert len(registry) == 0
        assert not simulator.is_running
        assert not registry.is_reaping

    def test_zero_ttl_disables_expiry(self):
        async def scenario():
            clock = ManualClock()
            registry = SensorSessionRegistry(
                lambda: SensorSimulator(tick_seconds=10), ttl_seconds=0, clock=clock,
            )
            await registry.create()
            clock.now = 10_000
            assert await registry.reap_idle() == []
            assert not registry.is_reaping
            count = len(registry)
            await registry.stop_all()
            return count

        assert asyncio.run(scenario()) == 1

    def test_stop_all_cancels_reaper(self):
        async def scenario():
            registry = SensorSessionRegistry(lambda: SensorSimulator(tick_seconds=10), ttl_seconds=60)
            await registry.create()
            await registry.stop_all()
            return registry

        registry = asyncio.run(scenario())
        assert len(registry) == 0
        assert not registry.is_reaping
