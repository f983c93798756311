"""
Sensor Simulator Service.

Simulates the field sensor network (soil temperature, soil moisture, air
humidity, soil pH). Every tick each channel drifts by a uniform
perturbation in [-variance/2, +variance/2], is clamped to its physical
range, rounded to one decimal and classified against its threshold band:

- critical: outside [min, max]
- warning:  within warning_margin of either bound
- good:     otherwise

The same warning margin (5) applies to every channel, pH included, so a
pH reading inside its 6.0-7.5 band is always 'warning'.

Seed values are classified at construction, so the initial snapshot
already shows pH as 'warning' instead of starting every channel as
'good' until the first tick.

Readings are immutable; each tick swaps in a new tuple so readers only
ever see a whole pre-tick or post-tick snapshot.
"""
import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from agrismart.core import config as settings
from agrismart.core.config import SENSOR_CHANNELS_PATH
from agrismart.services.agronomy_rules import (
    STATUS_CRITICAL,
    STATUS_GOOD,
    STATUS_WARNING,
    load_rule_table,
)
from agrismart.services.validation import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_SENSOR_TABLE = {
    "tick_seconds": 3,
    "warning_margin": 5,
    "channels": [
        {"id": "soil-temp", "name": "Soil Temperature", "seed": 24, "unit": "°C",
         "threshold": {"min": 15, "max": 30}, "variance": 5, "clamp": {"min": 0, "max": 100}},
        {"id": "soil-moisture", "name": "Soil Moisture", "seed": 65, "unit": "%",
         "threshold": {"min": 40, "max": 80}, "variance": 5, "clamp": {"min": 0, "max": 100}},
        {"id": "air-humidity", "name": "Air Humidity", "seed": 58, "unit": "%",
         "threshold": {"min": 40, "max": 70}, "variance": 5, "clamp": {"min": 0, "max": 100}},
        {"id": "soil-ph", "name": "Soil pH", "seed": 6.8, "unit": "pH",
         "threshold": {"min": 6, "max": 7.5}, "variance": 0.2, "clamp": {"min": 5, "max": 8}},
    ],
}

_sensor_table_cache = None


def clear_sensor_table_cache():
    """Clear the cache to reload sensor channels on next call."""
    global _sensor_table_cache
    _sensor_table_cache = None


def load_sensor_table() -> Dict:
    """Load sensor channel definitions from JSON file."""
    global _sensor_table_cache
    if _sensor_table_cache is None:
        _sensor_table_cache = load_rule_table(SENSOR_CHANNELS_PATH, DEFAULT_SENSOR_TABLE, "sensor channels")
    return _sensor_table_cache


class SensorSessionNotFoundError(KeyError):
    """Raised when a sensor session id is unknown or already stopped."""
    pass


@dataclass(frozen=True)
class SensorThreshold:
    min: float
    max: float


@dataclass(frozen=True)
class SensorChannelConfig:
    id: str
    name: str
    seed: float
    unit: str
    threshold: SensorThreshold
    variance: float
    clamp_min: float
    clamp_max: float


@dataclass(frozen=True)
class SensorNetworkConfig:
    channels: Tuple[SensorChannelConfig, ...]
    warning_margin: float = 5
    tick_seconds: float = 3

    @classmethod
    def from_table(cls, table: Dict) -> "SensorNetworkConfig":
        channels = tuple(
            SensorChannelConfig(
                id=c["id"],
                name=c["name"],
                seed=c["seed"],
                unit=c.get("unit", ""),
                threshold=SensorThreshold(min=c["threshold"]["min"], max=c["threshold"]["max"]),
                variance=c["variance"],
                clamp_min=c["clamp"]["min"],
                clamp_max=c["clamp"]["max"],
            )
            for c in table.get("channels", [])
        )
        return cls(
            channels=channels,
            warning_margin=table.get("warning_margin", 5),
            tick_seconds=table.get("tick_seconds", 3),
        )


@dataclass(frozen=True)
class SensorReading:
    id: str
    name: str
    value: float
    unit: str
    status: str
    threshold: SensorThreshold


@dataclass(frozen=True)
class SensorNetworkSummary:
    """Counts shown on the dashboard stats cards."""
    active: int
    total: int
    alerts: int


def classify_status(value: float, threshold: SensorThreshold, margin: float) -> str:
    if value < threshold.min or value > threshold.max:
        return STATUS_CRITICAL
    if value < threshold.min + margin or value > threshold.max - margin:
        return STATUS_WARNING
    return STATUS_GOOD


class SensorSimulator:
    """Timer-driven simulation of one sensor network."""

    def __init__(
        self,
        config: Optional[SensorNetworkConfig] = None,
        rng: Optional[random.Random] = None,
        tick_seconds: Optional[float] = None,
    ):
        self.config = config or SensorNetworkConfig.from_table(load_sensor_table())
        self.rng = rng or random.Random()
        self.tick_seconds = tick_seconds if tick_seconds is not None else self.config.tick_seconds
        self._channels = {c.id: c for c in self.config.channels}
        self._readings: Tuple[SensorReading, ...] = tuple(
            SensorReading(
                id=c.id,
                name=c.name,
                value=c.seed,
                unit=c.unit,
                status=classify_status(c.seed, c.threshold, self.config.warning_margin),
                threshold=c.threshold,
            )
            for c in self.config.channels
        )
        self._task: Optional[asyncio.Task] = None
        self.tick_count = 0

    def read(self) -> Tuple[SensorReading, ...]:
        """Current snapshot of every channel."""
        return self._readings

    def _advance(self, reading: SensorReading) -> SensorReading:
        channel = self._channels[reading.id]
        half = channel.variance / 2
        perturbed = reading.value + self.rng.uniform(-half, half)
        clamped = max(channel.clamp_min, min(channel.clamp_max, perturbed))
        value = round_half_up(clamped, 1)
        return replace(
            reading,
            value=value,
            status=classify_status(value, channel.threshold, self.config.warning_margin),
        )

    def tick(self) -> Tuple[SensorReading, ...]:
        """Advance every channel once and publish the new snapshot."""
        self._readings = tuple(self._advance(r) for r in self._readings)
        self.tick_count += 1
        logger.debug(
            f"Sensor tick {self.tick_count}: "
            + ", ".join(f"{r.id}={r.value}({r.status})" for r in self._readings)
        )
        return self._readings

    def summarize(self) -> SensorNetworkSummary:
        readings = self._readings
        alerts = sum(1 for r in readings if r.status != STATUS_GOOD)
        return SensorNetworkSummary(active=len(readings), total=len(self.config.channels), alerts=alerts)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.tick()

    async def start(self):
        """Start ticking on the running event loop; no-op when already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Sensor simulator started (tick every {self.tick_seconds}s)")

    async def stop(self):
        """Cancel the timer; no tick fires after this returns."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Sensor simulator stopped after {self.tick_count} tick(s)")


class SensorSessionRegistry:
    """
    One simulator per dashboard session, started and stopped with it.

    Sessions not read for ttl_seconds are stopped by a background reaper
    (and on every create), so clients that vanish without DELETE do not
    leave timers ticking. A ttl of 0 or None disables expiry.
    """

    def __init__(
        self,
        simulator_factory: Optional[Callable[[], SensorSimulator]] = None,
        ttl_seconds: Optional[float] = settings.SENSOR_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = simulator_factory or (
            lambda: SensorSimulator(tick_seconds=settings.SENSOR_TICK_SECONDS)
        )
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SensorSimulator] = {}
        self._last_seen: Dict[str, float] = {}
        self._reaper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def is_reaping(self) -> bool:
        return self._reaper is not None and not self._reaper.done()

    async def create(self) -> Tuple[str, SensorSimulator]:
        await self.reap_idle()
        session_id = uuid.uuid4().hex
        simulator = self._factory()
        await simulator.start()
        self._sessions[session_id] = simulator
        self._last_seen[session_id] = self._clock()
        logger.info(f"Sensor session {session_id} created")
        if self.ttl_seconds and not self.is_reaping:
            self._reaper = asyncio.create_task(self._reap_loop())
        return session_id, simulator

    def get(self, session_id: str) -> SensorSimulator:
        """Look up a session and mark it as recently read."""
        try:
            simulator = self._sessions[session_id]
        except KeyError:
            raise SensorSessionNotFoundError(session_id)
        self._last_seen[session_id] = self._clock()
        return simulator

    async def stop(self, session_id: str):
        simulator = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if simulator is None:
            raise SensorSessionNotFoundError(session_id)
        await simulator.stop()
        logger.info(f"Sensor session {session_id} stopped")

    async def reap_idle(self) -> List[str]:
        """Stop sessions idle for longer than ttl_seconds; returns their ids."""
        if not self.ttl_seconds:
            return []
        now = self._clock()
        expired = [sid for sid, seen in self._last_seen.items() if now - seen > self.ttl_seconds]
        for session_id in expired:
            await self.stop(session_id)
        if expired:
            logger.info(f"Reaped {len(expired)} idle sensor session(s)")
        return expired

    async def _reap_loop(self):
        while self._sessions:
            await asyncio.sleep(self.ttl_seconds)
            await self.reap_idle()

    async def stop_all(self):
        reaper, self._reaper = self._reaper, None
        if reaper is not None and reaper is not asyncio.current_task():
            reaper.cancel()
            try:
                await reaper
            except asyncio.CancelledError:
                pass
        for session_id in list(self._sessions):
            await self.stop(session_id)
