"""Demand-sensitive delivery pricing with a per-zone TTL cache.

The demand signal for a zone is reduced to a load ratio (active deliveries per
available courier). The ratio is mapped through a piecewise-linear monotonic
curve and nudged up when couriers are completing fewer deliveries than usual.
That demand excess above 1.0 decays by half for every configured half-life of
signal age. The decayed demand factor is then scaled by a time-of-day factor
for meal rushes, late nights and weekends, and the result is clamped to the
configured multiplier bounds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Final, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from storefront.core.settings import SurgeSettings
from storefront.services.errors import CheckoutValidationError, PricingUnavailableError
from storefront.services.money import to_money

logger = logging.getLogger(__name__)

MULTIPLIER_PLACES: Final = Decimal("0.01")
NO_SURGE: Final = Decimal("1.00")

# (load ratio, multiplier) knots; flat below the first and above the last.
SURGE_CURVE: Final[tuple[tuple[float, float], ...]] = (
    (1.5, 1.00),
    (2.0, 1.15),
    (3.0, 1.30),
    (5.0, 1.80),
    (8.0, 2.50),
)

# (completion rate below, added demand) checked in order.
COMPLETION_ADJUSTMENTS: Final[tuple[tuple[float, float], ...]] = (
    (0.8, 0.20),
    (0.9, 0.10),
)

LUNCH_RUSH_HOURS: Final = range(11, 15)
DINNER_RUSH_HOURS: Final = range(17, 22)
LATE_NIGHT_HOURS: Final = frozenset((22, 23, 0, 1, 2, 3, 4, 5, 6))

PEAK_HOURS_REASON: Final = "Peak hours"
HIGH_DEMAND_REASON: Final = "High demand"

Clock = Callable[[], datetime]
PriceListener = Callable[["PricingResult"], None]


@dataclass(frozen=True, slots=True)
class DemandSignal:
    """Raw demand observation for a zone."""

    zone_id: int
    active_deliveries: int
    available_couriers: int
    observed_at: datetime
    completion_rate: float | None = None

    @property
    def load_ratio(self) -> float:
        return self.active_deliveries / max(self.available_couriers, 1)

    @property
    def is_malformed(self) -> bool:
        if self.active_deliveries < 0 or self.available_couriers < 0:
            return True
        return self.completion_rate is not None and not 0.0 <= self.completion_rate <= 1.0


class DemandSignalSource(Protocol):
    """Supplies the latest demand signal for a zone."""

    async def get_signal(self, zone_id: int) -> DemandSignal | None:
        """Return the signal, ``None`` when unknown, or raise PricingUnavailableError."""


class StaticDemandSignalSource:
    """In-memory signal source for fixtures and local development."""

    def __init__(self, signals: dict[int, DemandSignal] | None = None) -> None:
        self._signals: dict[int, DemandSignal] = dict(signals or {})

    def set_signal(self, signal: DemandSignal) -> None:
        self._signals[signal.zone_id] = signal

    def clear(self, zone_id: int | None = None) -> None:
        if zone_id is None:
            self._signals.clear()
        else:
            self._signals.pop(zone_id, None)

    async def get_signal(self, zone_id: int) -> DemandSignal | None:
        return self._signals.get(zone_id)


@dataclass(frozen=True, slots=True)
class SurgeFactors:
    """Breakdown of a multiplier into the factors that produced it."""

    multiplier: Decimal
    demand: float = 1.0
    time_of_day: float = 1.0

    @property
    def reasons(self) -> tuple[str, ...]:
        reasons: list[str] = []
        if self.time_of_day > 1.1:
            reasons.append(PEAK_HOURS_REASON)
        if self.demand > 1.2:
            reasons.append(HIGH_DEMAND_REASON)
        return tuple(reasons)

    @property
    def estimated_duration(self) -> str:
        """Rough guess at how long the surge lasts, shown beside the badge."""
        if self.demand > 2.0:
            return "1-2 hours"
        return "15-30 minutes"


@dataclass(slots=True)
class SurgeState:
    """Cached multiplier for a zone and the signal that produced it."""

    zone_id: int
    multiplier: Decimal
    signal: DemandSignal | None
    computed_at: datetime
    ttl_seconds: float
    factors: SurgeFactors = field(default_factory=lambda: SurgeFactors(NO_SURGE))

    def is_expired(self, now: datetime) -> bool:
        return (now - self.computed_at).total_seconds() >= self.ttl_seconds

    @property
    def expires_at(self) -> datetime:
        return self.computed_at + timedelta(seconds=self.ttl_seconds)


@dataclass(frozen=True, slots=True)
class PricingResult:
    """Immutable price snapshot for a zone."""

    zone_id: int
    base_price: Decimal
    multiplier: Decimal
    surge_price: Decimal
    is_surge_active: bool
    computed_at: datetime
    surge_reasons: tuple[str, ...] = ()
    estimated_duration: str | None = None
    next_price_check: datetime | None = None

    @property
    def surge_level(self) -> str:
        return surge_level(self.multiplier)


def surge_level(multiplier: Decimal) -> str:
    """Badge level used by the storefront UI."""
    if multiplier >= Decimal("2.5"):
        return "extreme"
    if multiplier >= Decimal("2.0"):
        return "high"
    if multiplier >= Decimal("1.5"):
        return "medium"
    return "low"


def curve_multiplier(load_ratio: float) -> float:
    """Map a load ratio through :data:`SURGE_CURVE` (monotonic, unclamped)."""

    first_ratio, first_value = SURGE_CURVE[0]
    if load_ratio <= first_ratio:
        return first_value
    for (left_ratio, left_value), (right_ratio, right_value) in zip(
        SURGE_CURVE, SURGE_CURVE[1:]
    ):
        if load_ratio <= right_ratio:
            span = (load_ratio - left_ratio) / (right_ratio - left_ratio)
            return left_value + span * (right_value - left_value)
    return SURGE_CURVE[-1][1]


def completion_adjustment(completion_rate: float | None) -> float:
    if completion_rate is None:
        return 0.0
    for threshold, extra in COMPLETION_ADJUSTMENTS:
        if completion_rate < threshold:
            return extra
    return 0.0


def _resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:  # pragma: no cover - depends on system tz database
        logger.warning("Unknown surge time zone %s, using UTC", name)
        return ZoneInfo("UTC")


def time_of_day_factor(moment: datetime) -> float:
    """Meal rushes, late nights and weekends cost more; ``moment`` is local time."""

    hour = moment.hour
    factor = 1.0
    if hour in LUNCH_RUSH_HOURS:
        factor += 0.3
    if hour in DINNER_RUSH_HOURS:
        factor += 0.5
    if hour in LATE_NIGHT_HOURS:
        factor += 0.2
    if moment.weekday() >= 5:
        factor += 0.15
    return factor


def clamp_multiplier(value: Decimal, settings: SurgeSettings) -> Decimal:
    bounded = min(max(value, settings.min_multiplier), settings.max_multiplier)
    return bounded.quantize(MULTIPLIER_PLACES, rounding=ROUND_HALF_UP)


def compute_factors(
    signal: DemandSignal | None, settings: SurgeSettings, now: datetime
) -> SurgeFactors:
    """Compute the bounded multiplier and its factors; missing or bad signals mean no surge."""

    if signal is None:
        return SurgeFactors(clamp_multiplier(NO_SURGE, settings))
    if signal.is_malformed:
        logger.warning(
            "Discarding malformed demand signal for zone %s: %s active, %s couriers, "
            "completion rate %s",
            signal.zone_id,
            signal.active_deliveries,
            signal.available_couriers,
            signal.completion_rate,
        )
        return SurgeFactors(clamp_multiplier(NO_SURGE, settings))

    demand = curve_multiplier(signal.load_ratio) + completion_adjustment(
        signal.completion_rate
    )
    age = max((now - signal.observed_at).total_seconds(), 0.0)
    if settings.signal_half_life_seconds > 0 and age > 0:
        demand = 1.0 + (demand - 1.0) * 0.5 ** (age / settings.signal_half_life_seconds)

    time_factor = 1.0
    if settings.time_of_day_pricing:
        time_factor = time_of_day_factor(
            now.astimezone(_resolve_timezone(settings.time_zone))
        )
    raw = demand * time_factor
    return SurgeFactors(
        multiplier=clamp_multiplier(Decimal(str(round(raw, 6))), settings),
        demand=round(demand, 6),
        time_of_day=round(time_factor, 6),
    )


def compute_multiplier(
    signal: DemandSignal | None, settings: SurgeSettings, now: datetime
) -> Decimal:
    return compute_factors(signal, settings, now).multiplier


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SurgePricingEngine:
    """Pull-based surge pricing with a per-zone TTL cache.

    ``get_price`` returns the cached result while the zone's state is fresh
    and recomputes once the TTL has elapsed; only a recompute awaits the
    demand source. Listeners registered through ``subscribe`` hear about
    every result that differs from the previous one.
    """

    def __init__(
        self,
        source: DemandSignalSource,
        settings: SurgeSettings | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or SurgeSettings()
        self._clock = clock or _utcnow
        self._states: dict[int, SurgeState] = {}
        self._results: dict[int, PricingResult] = {}
        self._listeners: dict[int, list[PriceListener]] = {}

    @property
    def settings(self) -> SurgeSettings:
        return self._settings

    def state(self, zone_id: int) -> SurgeState | None:
        return self._states.get(zone_id)

    async def get_price(
        self, zone_id: int, base_price: Decimal | float | str
    ) -> PricingResult:
        """Return the current price for ``zone_id``, recomputing past the TTL."""

        base = to_money(base_price)
        now = self._clock()
        state = self._states.get(zone_id)
        if state is None or state.is_expired(now):
            state = await self._recompute_state(zone_id, now)
        else:
            cached = self._results.get(zone_id)
            if cached is not None and cached.base_price == base:
                return cached
        return self._publish(self._build_result(state, base))

    async def refresh(
        self, zone_id: int, base_price: Decimal | float | str | None = None
    ) -> PricingResult:
        """Recompute the zone's multiplier now, regardless of TTL."""

        if base_price is None:
            cached = self._results.get(zone_id)
            if cached is None:
                raise CheckoutValidationError(
                    f"No base price known for zone {zone_id}", field="base_price"
                )
            base = cached.base_price
        else:
            base = to_money(base_price)
        state = await self._recompute_state(zone_id, self._clock())
        return self._publish(self._build_result(state, base))

    def subscribe(self, zone_id: int, listener: PriceListener) -> Callable[[], None]:
        """Register a listener for price changes; returns an unsubscribe callable."""

        listeners = self._listeners.setdefault(zone_id, [])
        listeners.append(listener)

        def _unsubscribe() -> None:
            current = self._listeners.get(zone_id, [])
            if listener in current:
                current.remove(listener)
            if not current:
                self._listeners.pop(zone_id, None)

        return _unsubscribe

    def subscribed_zones(self) -> dict[int, Decimal]:
        """Zones with listeners, keyed to the base price they were last quoted at."""
        return {
            zone_id: self._results[zone_id].base_price
            for zone_id in self._listeners
            if zone_id in self._results
        }

    def forget(self, zone_id: int) -> None:
        """Drop cached state so the next read recomputes."""
        self._states.pop(zone_id, None)
        self._results.pop(zone_id, None)

    async def _recompute_state(self, zone_id: int, now: datetime) -> SurgeState:
        signal: DemandSignal | None
        try:
            signal = await self._source.get_signal(zone_id)
        except PricingUnavailableError as exc:
            logger.warning(
                "Demand signal unavailable for zone %s, pricing without surge: %s",
                zone_id,
                exc,
            )
            signal = None
        factors = compute_factors(signal, self._settings, now)
        state = SurgeState(
            zone_id=zone_id,
            multiplier=factors.multiplier,
            signal=signal,
            computed_at=now,
            ttl_seconds=self._settings.ttl_seconds,
            factors=factors,
        )
        self._states[zone_id] = state
        logger.debug("Surge multiplier for zone %s is %s", zone_id, factors.multiplier)
        return state

    def _build_result(self, state: SurgeState, base: Decimal) -> PricingResult:
        return PricingResult(
            zone_id=state.zone_id,
            base_price=base,
            multiplier=state.multiplier,
            surge_price=to_money(base * state.multiplier),
            is_surge_active=state.multiplier > self._settings.active_threshold,
            computed_at=state.computed_at,
            surge_reasons=state.factors.reasons,
            estimated_duration=state.factors.estimated_duration,
            next_price_check=state.expires_at,
        )

    def _publish(self, result: PricingResult) -> PricingResult:
        previous = self._results.get(result.zone_id)
        self._results[result.zone_id] = result
        changed = previous is None or (
            previous.multiplier,
            previous.surge_price,
            previous.base_price,
        ) != (result.multiplier, result.surge_price, result.base_price)
        if changed:
            for listener in list(self._listeners.get(result.zone_id, ())):
                try:
                    listener(result)
                except Exception:
                    logger.exception(
                        "Price listener failed for zone %s", result.zone_id
                    )
        return result


class SurgeRefreshTimer:
    """Periodically refreshes zones on the running event loop.

    Every tick covers explicitly watched zones plus every zone some checkout
    is subscribed to, so open sessions see live price changes. A tick runs as
    a task; a zone that fails to refresh is logged and the next tick is still
    scheduled.
    """

    def __init__(self, engine: SurgePricingEngine, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("Refresh interval must be positive")
        self._engine = engine
        self._interval = interval_seconds
        self._watched: dict[int, Decimal] = {}
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def watch(self, zone_id: int, base_price: Decimal | float | str) -> None:
        self._watched[zone_id] = to_money(base_price)

    def unwatch(self, zone_id: int) -> None:
        self._watched.pop(zone_id, None)

    def start(self) -> None:
        if self._handle is None:
            self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._refresh_all())

    async def _refresh_all(self) -> None:
        try:
            targets = {**self._engine.subscribed_zones(), **self._watched}
            for zone_id, base_price in targets.items():
                try:
                    await self._engine.refresh(zone_id, base_price)
                except Exception:
                    logger.exception("Surge refresh failed for zone %s", zone_id)
        finally:
            self._task = None
            if self._handle is not None:
                self._schedule()


__all__ = [
    "DemandSignal",
    "DemandSignalSource",
    "PricingResult",
    "StaticDemandSignalSource",
    "SurgeFactors",
    "SurgePricingEngine",
    "SurgeRefreshTimer",
    "SurgeState",
    "compute_factors",
    "compute_multiplier",
    "curve_multiplier",
    "surge_level",
    "time_of_day_factor",
]
