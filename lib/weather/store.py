"""
Weather Resource Cache

Location-keyed cache of current conditions, forecast and alerts with TTL
freshness, in-flight coalescing, stale-while-revalidate and preservation of
the last good data on error.

Reading state and requesting freshness are two separate calls:

    cache = WeatherResourceCache(WeatherService(client))
    await cache.ensureCurrent(location)
    resource = cache.getCurrent(buildLocationKey(location))

One fetch serves all three kinds: the provider returns them in a single
round trip, so the three slots of a key always settle together.
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from .errors import UnknownWeatherError, WeatherError
from .location import buildLocationKey
from .lru import LRUCache
from .models import (
    CurrentConditions,
    ForecastTimeline,
    Location,
    LocationResources,
    Resource,
    ResourceKind,
    ResourceStatus,
    WeatherAlert,
    WeatherBundle,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300  # seconds
DEFAULT_MAX_LOCATIONS = 256

# Builds the settled slot from the previous one
SlotFactory = Callable[[Optional[Resource[Any]]], Resource[Any]]


class WeatherBundleFetcher(Protocol):
    """Source of normalized bundles, see lib.weather.service.WeatherService"""

    async def fetchBundle(self, location: Location) -> WeatherBundle: ...


@dataclass(slots=True)
class _InFlightFetch:
    stamp: int
    task: "asyncio.Task[None]"


def _startingSlot(slot: Optional[Resource[Any]]) -> Resource[Any]:
    """Slot state while a fetch is running: keep shown data, otherwise loading"""
    if slot is not None and slot.hasData():
        return dataclasses.replace(slot, isRefreshing=True)
    return Resource(status=ResourceStatus.LOADING)


def _failedSlot(slot: Optional[Resource[Any]], error: WeatherError, failedAt: float) -> Resource[Any]:
    """Error slot: shown data survives, lastUpdatedAt moves to the failure time"""
    return Resource(
        status=ResourceStatus.ERROR,
        data=slot.data if slot is not None else None,
        error=error,
        lastUpdatedAt=failedAt,
        isRefreshing=False,
    )


class WeatherResourceCache:
    """
    Per-location resource slots shared by every consumer in the process

    Args:
        fetcher: Bundle source (normally WeatherService)
        ttl: Freshness window of a successful slot (seconds)
        maxLocations: LRU bound on the number of cached locations
        clock: Wall clock returning Unix seconds (injectable for tests)
    """

    def __init__(
        self,
        fetcher: WeatherBundleFetcher,
        ttl: float = DEFAULT_TTL,
        maxLocations: int = DEFAULT_MAX_LOCATIONS,
        clock: Callable[[], float] = time.time,
    ):
        if ttl < 0:
            raise ValueError(f"TTL must not be negative, got {ttl}")

        self.fetcher = fetcher
        self.ttl = ttl
        self.maxLocations = maxLocations
        self.clock = clock

        self._lock = RLock()
        self._entries: LRUCache[str, LocationResources] = LRUCache(maxLocations, onEvict=self._onEvict)
        self._inFlight: Dict[str, _InFlightFetch] = {}
        self._lastStamp = 0
        # Newest stamp whose outcome was written, per key
        self._appliedStamps: Dict[str, int] = {}
        # Last stamp issued when a slot was cleared; fetches up to it must not refill the slot
        self._clearedAt: Dict[Tuple[str, ResourceKind], int] = {}

    # Requesting freshness

    async def ensure(self, kind: ResourceKind, location: Location, force: bool = False) -> None:
        """
        Make sure the `kind` slot of a location is fresh

        Returns without network activity when the slot is fresh, joins the
        running fetch of the same key if there is one, and starts a combined
        fetch for all kinds otherwise. Failures are recorded in the slots and
        never raised.

        Args:
            kind: Resource kind the caller is interested in
            location: Requested location
            force: Ignore TTL freshness
        """
        key = buildLocationKey(location)
        while True:
            with self._lock:
                entry = self._entries.get(key)
                if not force and self._isFresh(self._slotOf(entry, kind)):
                    logger.debug(f"{kind} for {key} is fresh, skipping fetch")
                    return

                inFlight = self._inFlight.get(key)
                joinOnly = inFlight is not None and self._wasCleared(key, kind, inFlight.stamp)
                if inFlight is None:
                    inFlight = self._startFetch(key, location)
                else:
                    logger.debug(f"Joining in-flight fetch #{inFlight.stamp} for {key}")

            # Shield: a cancelled caller must not cancel the fetch other callers wait for
            await asyncio.shield(inFlight.task)

            if not joinOnly:
                return
            # The slot was cleared after the joined fetch started, so it did not
            # refill it: wait for the next fetch instead
            force = True

    async def ensureCurrent(self, location: Location, force: bool = False) -> None:
        await self.ensure(ResourceKind.CURRENT, location, force)

    async def ensureForecast(self, location: Location, force: bool = False) -> None:
        await self.ensure(ResourceKind.FORECAST, location, force)

    async def ensureAlerts(self, location: Location, force: bool = False) -> None:
        await self.ensure(ResourceKind.ALERTS, location, force)

    # Reading state

    def get(self, kind: ResourceKind, key: str) -> Resource[Any]:
        """Current slot state, Resource(status=idle) when absent. Never fetches."""
        with self._lock:
            slot = self._slotOf(self._entries.peek(key), kind)
        return slot if slot is not None else Resource()

    def getCurrent(self, key: str) -> Resource[CurrentConditions]:
        return self.get(ResourceKind.CURRENT, key)

    def getForecast(self, key: str) -> Resource[Tuple[ForecastTimeline, ...]]:
        return self.get(ResourceKind.FORECAST, key)

    def getAlerts(self, key: str) -> Resource[Tuple[WeatherAlert, ...]]:
        return self.get(ResourceKind.ALERTS, key)

    def getResources(self, key: str) -> LocationResources:
        """Whole triple of a key as one consistent snapshot"""
        with self._lock:
            entry = self._entries.peek(key)
        return entry if entry is not None else LocationResources()

    # Clearing

    def clear(self, kind: ResourceKind, key: str) -> None:
        """
        Drop the `kind` slot of a key

        A fetch already running for the key will not repopulate the slot.
        """
        with self._lock:
            if key in self._inFlight:
                self._clearedAt[(key, kind)] = self._lastStamp

            entry = self._entries.peek(key)
            if entry is None:
                return
            entry = dataclasses.replace(entry, **{kind.value: None})
            if entry.current is None and entry.forecast is None and entry.alerts is None:
                self._entries.delete(key)
                self._appliedStamps.pop(key, None)
            else:
                # Plain assignment keeps LRU position
                self._entries[key] = entry
        logger.debug(f"Cleared {kind} for {key}")

    def clearCurrent(self, key: str) -> None:
        self.clear(ResourceKind.CURRENT, key)

    def clearForecast(self, key: str) -> None:
        self.clear(ResourceKind.FORECAST, key)

    def clearAlerts(self, key: str) -> None:
        self.clear(ResourceKind.ALERTS, key)

    def getStats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            return {
                "entries": len(self._entries),
                "inFlight": len(self._inFlight),
                "ttl": self.ttl,
                "maxLocations": self.maxLocations,
            }

    # Internals

    @staticmethod
    def _slotOf(entry: Optional[LocationResources], kind: ResourceKind) -> Optional[Resource[Any]]:
        if entry is None:
            return None
        return getattr(entry, kind.value)

    def _isFresh(self, slot: Optional[Resource[Any]]) -> bool:
        return (
            slot is not None
            and slot.status == ResourceStatus.SUCCESS
            and slot.lastUpdatedAt is not None
            and self.clock() - slot.lastUpdatedAt < self.ttl
        )

    def _wasCleared(self, key: str, kind: ResourceKind, stamp: int) -> bool:
        return self._clearedAt.get((key, kind), 0) >= stamp

    def _onEvict(self, key: str, _entry: LocationResources) -> None:
        self._appliedStamps.pop(key, None)
        logger.debug(f"Evicted {key} (max locations: {self.maxLocations})")

    def _startFetch(self, key: str, location: Location) -> _InFlightFetch:
        """Mark slots as refreshing/loading and register a new fetch. Lock must be held."""
        self._lastStamp += 1
        stamp = self._lastStamp

        entry = self._entries.peek(key) or LocationResources()
        self._entries.set(
            key,
            LocationResources(
                current=_startingSlot(entry.current),
                forecast=_startingSlot(entry.forecast),
                alerts=_startingSlot(entry.alerts),
            ),
        )

        task = asyncio.get_running_loop().create_task(
            self._runFetch(key, location, stamp),
            name=f"weather-fetch:{key}#{stamp}",
        )
        inFlight = _InFlightFetch(stamp=stamp, task=task)
        self._inFlight[key] = inFlight
        logger.debug(f"Started fetch #{stamp} for {key}")
        return inFlight

    async def _runFetch(self, key: str, location: Location, stamp: int) -> None:
        try:
            try:
                bundle = await self.fetcher.fetchBundle(location)
            except WeatherError as e:
                logger.warning(f"Weather fetch #{stamp} for {key} failed: {e}")
                self._applyFailure(key, stamp, e)
            except asyncio.CancelledError:
                self._applyFailure(key, stamp, UnknownWeatherError("Weather fetch was cancelled"))
                raise
            except Exception as e:
                logger.error(f"Unexpected error in weather fetch #{stamp} for {key}: {e}")
                logger.exception(e)
                self._applyFailure(key, stamp, UnknownWeatherError(f"Unexpected error: {e}"))
            else:
                self._applySuccess(key, stamp, bundle)
        finally:
            with self._lock:
                inFlight = self._inFlight.get(key)
                if inFlight is not None and inFlight.stamp == stamp:
                    del self._inFlight[key]
                    for kind in ResourceKind:
                        self._clearedAt.pop((key, kind), None)

    def _isStale(self, key: str, stamp: int) -> bool:
        applied = self._appliedStamps.get(key, 0)
        if stamp < applied:
            logger.debug(f"Discarding outcome of fetch #{stamp} for {key}: #{applied} already applied")
            return True
        return False

    def _settle(self, key: str, stamp: int, slots: Dict[ResourceKind, SlotFactory]) -> None:
        """Write the outcome of fetch `stamp` into all slots of `key` at once. Lock must be held."""
        entry = self._entries.peek(key) or LocationResources()
        updated: Dict[str, Optional[Resource[Any]]] = {}
        for kind, makeSlot in slots.items():
            previous = getattr(entry, kind.value)
            if self._wasCleared(key, kind, stamp):
                updated[kind.value] = previous
            else:
                updated[kind.value] = makeSlot(previous)

        if all(slot is None for slot in updated.values()):
            self._entries.delete(key)
            self._appliedStamps.pop(key, None)
            return
        self._appliedStamps[key] = stamp
        self._entries.set(key, LocationResources(**updated))

    def _applySuccess(self, key: str, stamp: int, bundle: WeatherBundle) -> None:
        with self._lock:
            if self._isStale(key, stamp):
                return
            now = self.clock()

            def success(data: Any) -> SlotFactory:
                return lambda _previous: Resource(status=ResourceStatus.SUCCESS, data=data, lastUpdatedAt=now)

            self._settle(
                key,
                stamp,
                {
                    ResourceKind.CURRENT: success(bundle.current),
                    ResourceKind.FORECAST: success(bundle.forecastTimelines),
                    ResourceKind.ALERTS: success(bundle.alerts),
                },
            )
        logger.debug(f"Fetch #{stamp} for {key} succeeded")

    def _applyFailure(self, key: str, stamp: int, error: WeatherError) -> None:
        with self._lock:
            if self._isStale(key, stamp):
                return
            now = self.clock()
            self._settle(
                key,
                stamp,
                {kind: (lambda previous: _failedSlot(previous, error, now)) for kind in ResourceKind},
            )
