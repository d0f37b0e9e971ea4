"""
Tests for the weather resource cache
"""

import asyncio
from typing import Any, List, Optional

import pytest

from lib.weather.errors import ContractError, NetworkError, UnknownWeatherError
from lib.weather.location import buildLocationKey
from lib.weather.models import Location, ResourceKind, ResourceStatus
from lib.weather.store import WeatherResourceCache
from tests.fixtures.weather_payloads import MOSCOW, createWeatherBundle

KEY = buildLocationKey(MOSCOW)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeFetcher:
    """
    Bundle fetcher counting calls

    Results are taken from `results` in order (exceptions are raised), the
    default bundle is returned when the queue is empty. While `gate` is set
    to an unset Event, fetches block until it is set.
    """

    def __init__(self):
        self.calls: List[Location] = []
        self.results: List[Any] = []
        self.gate: Optional[asyncio.Event] = None
        self.default = createWeatherBundle()

    async def fetchBundle(self, location: Location):
        self.calls.append(location)
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, BaseException):
            raise result
        return result


async def letTasksRun(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def cache(fetcher, clock):
    return WeatherResourceCache(fetcher, ttl=300, clock=clock)


class TestCoalescing:
    """Test in-flight coalescing"""

    @pytest.mark.asyncio
    async def testConcurrentEnsureMakesOneCall(self, cache, fetcher):
        """Test concurrent ensure calls for one key result in exactly one provider call"""
        nearby = Location(lat=55.75581, lon=37.61731)

        await asyncio.gather(
            cache.ensureCurrent(MOSCOW),
            cache.ensureForecast(MOSCOW),
            cache.ensureAlerts(MOSCOW),
            cache.ensureCurrent(nearby),
        )

        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def testDifferentIdentifiersFetchSeparately(self, cache, fetcher):
        await asyncio.gather(
            cache.ensureCurrent(Location(lat=55.7558, lon=37.6173, id="home")),
            cache.ensureCurrent(Location(lat=55.7558, lon=37.6173, id="office")),
        )

        assert len(fetcher.calls) == 2

    @pytest.mark.asyncio
    async def testCancelledCallerDoesNotCancelFetch(self, cache, fetcher):
        """Test that cancelling one waiter leaves the shared fetch running"""
        fetcher.gate = asyncio.Event()
        first = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        second = asyncio.create_task(cache.ensureForecast(MOSCOW))
        await letTasksRun()

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        fetcher.gate.set()
        await second

        assert len(fetcher.calls) == 1
        assert cache.getCurrent(KEY).status == ResourceStatus.SUCCESS
        assert cache.getStats()["inFlight"] == 0


class TestFreshness:
    """Test TTL freshness"""

    @pytest.mark.asyncio
    async def testSuccessFillsAllKinds(self, cache, clock):
        """Test all three kinds report success with matching lastUpdatedAt"""
        await cache.ensureCurrent(MOSCOW)

        current = cache.getCurrent(KEY)
        forecast = cache.getForecast(KEY)
        alerts = cache.getAlerts(KEY)

        for resource in (current, forecast, alerts):
            assert resource.status == ResourceStatus.SUCCESS
            assert resource.lastUpdatedAt == clock.now
            assert resource.error is None
            assert not resource.isRefreshing

        assert current.data.temperature == 15.5
        assert len(forecast.data) == 2
        assert len(alerts.data) == 1

    @pytest.mark.asyncio
    async def testFreshSlotSkipsFetch(self, cache, fetcher, clock):
        await cache.ensureCurrent(MOSCOW)
        clock.now += 299

        await cache.ensureCurrent(MOSCOW)
        await cache.ensureAlerts(MOSCOW)

        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def testExpiredSlotRefetches(self, cache, fetcher, clock):
        await cache.ensureCurrent(MOSCOW)
        clock.now += 300

        await cache.ensureCurrent(MOSCOW)

        assert len(fetcher.calls) == 2
        assert cache.getCurrent(KEY).lastUpdatedAt == clock.now

    @pytest.mark.asyncio
    async def testForceIgnoresTtl(self, cache, fetcher):
        await cache.ensureCurrent(MOSCOW)
        await cache.ensureCurrent(MOSCOW, force=True)

        assert len(fetcher.calls) == 2

    @pytest.mark.asyncio
    async def testErrorSlotIsNotFresh(self, cache, fetcher):
        fetcher.results = [NetworkError("down")]

        await cache.ensureCurrent(MOSCOW)
        await cache.ensureCurrent(MOSCOW)

        assert len(fetcher.calls) == 2
        assert cache.getCurrent(KEY).status == ResourceStatus.SUCCESS

    def testNegativeTtl(self, fetcher):
        with pytest.raises(ValueError):
            WeatherResourceCache(fetcher, ttl=-1)


class TestErrors:
    """Test error recording"""

    @pytest.mark.asyncio
    async def testErrorPreservesPriorData(self, cache, fetcher, clock):
        """Test a failing fetch after a success keeps data on all three slots"""
        await cache.ensureCurrent(MOSCOW)
        before = cache.getResources(KEY)

        error = NetworkError("connection refused")
        fetcher.results = [error]
        clock.now += 600
        await cache.ensureCurrent(MOSCOW)

        after = cache.getResources(KEY)
        for previous, resource in ((before.current, after.current), (before.forecast, after.forecast), (before.alerts, after.alerts)):
            assert resource.status == ResourceStatus.ERROR
            assert resource.error is error
            assert resource.data == previous.data
            assert resource.lastUpdatedAt == clock.now
            assert not resource.isRefreshing

    @pytest.mark.asyncio
    async def testErrorWithoutPriorData(self, cache, fetcher, clock):
        fetcher.results = [ContractError("Invalid payload: missing or invalid field 'current.temp'")]

        result = await cache.ensureForecast(MOSCOW)

        assert result is None
        forecast = cache.getForecast(KEY)
        assert forecast.status == ResourceStatus.ERROR
        assert forecast.data is None
        assert forecast.lastUpdatedAt == clock.now
        assert isinstance(forecast.error, ContractError)

    @pytest.mark.asyncio
    async def testFailureMovesLastUpdatedAt(self, cache, fetcher, clock):
        """Test a failure stamps every slot with the failure time, not the last success time"""
        await cache.ensureAlerts(MOSCOW)
        assert cache.getAlerts(KEY).lastUpdatedAt == 1000.0

        fetcher.results = [NetworkError("connection reset")]
        clock.now = 2000.0
        await cache.ensureAlerts(MOSCOW)

        resources = cache.getResources(KEY)
        assert [r.lastUpdatedAt for r in (resources.current, resources.forecast, resources.alerts)] == [2000.0] * 3
        assert resources.alerts.data is not None

    @pytest.mark.asyncio
    async def testUnexpectedExceptionRecordedAsUnknown(self, cache, fetcher):
        fetcher.results = [RuntimeError("boom")]

        await cache.ensureCurrent(MOSCOW)

        current = cache.getCurrent(KEY)
        assert current.status == ResourceStatus.ERROR
        assert isinstance(current.error, UnknownWeatherError)


class TestStaleWhileRevalidate:
    """Test slot states while a fetch is running"""

    @pytest.mark.asyncio
    async def testLoadingWithoutData(self, cache, fetcher):
        fetcher.gate = asyncio.Event()
        task = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        await letTasksRun()

        for kind in ResourceKind:
            resource = cache.get(kind, KEY)
            assert resource.status == ResourceStatus.LOADING
            assert resource.data is None

        fetcher.gate.set()
        await task

    @pytest.mark.asyncio
    async def testRefreshKeepsData(self, cache, fetcher, clock):
        """Test a refresh keeps shown data and sets isRefreshing instead of loading"""
        await cache.ensureCurrent(MOSCOW)
        oldData = cache.getCurrent(KEY).data

        fetcher.gate = asyncio.Event()
        fetcher.results = [createWeatherBundle(temperature=20.0)]
        clock.now += 600
        task = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        await letTasksRun()

        refreshing = cache.getCurrent(KEY)
        assert refreshing.status == ResourceStatus.SUCCESS
        assert refreshing.isRefreshing
        assert refreshing.data == oldData

        fetcher.gate.set()
        await task

        current = cache.getCurrent(KEY)
        assert not current.isRefreshing
        assert current.data.temperature == 20.0

    @pytest.mark.asyncio
    async def testRefreshAfterErrorKeepsErrorStatus(self, cache, fetcher, clock):
        await cache.ensureCurrent(MOSCOW)
        fetcher.results = [NetworkError("down")]
        clock.now += 600
        await cache.ensureCurrent(MOSCOW)

        fetcher.gate = asyncio.Event()
        task = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        await letTasksRun()

        current = cache.getCurrent(KEY)
        assert current.status == ResourceStatus.ERROR
        assert current.isRefreshing
        assert current.data is not None

        fetcher.gate.set()
        await task
        assert cache.getCurrent(KEY).status == ResourceStatus.SUCCESS


class TestReadAndClear:
    """Test selectors and clearing"""

    def testAbsentKeyIsIdle(self, cache):
        resource = cache.getCurrent("loc:0.000,0.000")

        assert resource.status == ResourceStatus.IDLE
        assert resource.data is None
        assert resource.error is None
        assert resource.lastUpdatedAt is None
        assert not resource.isRefreshing

    @pytest.mark.asyncio
    async def testClearSingleKind(self, cache):
        await cache.ensureCurrent(MOSCOW)

        cache.clearCurrent(KEY)

        assert cache.getCurrent(KEY).status == ResourceStatus.IDLE
        assert cache.getForecast(KEY).status == ResourceStatus.SUCCESS
        assert cache.getAlerts(KEY).status == ResourceStatus.SUCCESS

    @pytest.mark.asyncio
    async def testClearAllKindsDropsEntry(self, cache):
        await cache.ensureCurrent(MOSCOW)

        cache.clearCurrent(KEY)
        cache.clearForecast(KEY)
        cache.clearAlerts(KEY)

        assert cache.getStats()["entries"] == 0

    def testClearAbsentKey(self, cache):
        cache.clearAlerts("loc:1.000,1.000")

    @pytest.mark.asyncio
    async def testClearedSlotNotRepopulatedByInFlightFetch(self, cache, fetcher):
        fetcher.gate = asyncio.Event()
        task = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        await letTasksRun()

        cache.clearAlerts(KEY)
        fetcher.gate.set()
        await task

        assert cache.getAlerts(KEY).status == ResourceStatus.IDLE
        assert cache.getCurrent(KEY).status == ResourceStatus.SUCCESS

    @pytest.mark.asyncio
    async def testEnsureAfterClearWaitsForNewFetch(self, cache, fetcher):
        """Test ensure joining a fetch that cannot fill the cleared slot starts another one"""
        fetcher.gate = asyncio.Event()
        first = asyncio.create_task(cache.ensureForecast(MOSCOW))
        await letTasksRun()

        cache.clearCurrent(KEY)
        second = asyncio.create_task(cache.ensureCurrent(MOSCOW))
        await letTasksRun()

        fetcher.gate.set()
        await asyncio.gather(first, second)

        assert len(fetcher.calls) == 2
        assert cache.getCurrent(KEY).status == ResourceStatus.SUCCESS


class TestEvictionAndOrdering:
    """Test LRU bound and stale fetch guard"""

    @pytest.mark.asyncio
    async def testLeastRecentlyEnsuredIsEvicted(self, fetcher, clock):
        cache = WeatherResourceCache(fetcher, ttl=300, maxLocations=2, clock=clock)
        first = Location(lat=1.0, lon=1.0)
        second = Location(lat=2.0, lon=2.0)
        third = Location(lat=3.0, lon=3.0)

        await cache.ensureCurrent(first)
        await cache.ensureCurrent(second)
        # Fresh hit still refreshes recency
        await cache.ensureCurrent(first)
        await cache.ensureCurrent(third)

        assert cache.getStats()["entries"] == 2
        assert cache.getCurrent(buildLocationKey(first)).status == ResourceStatus.SUCCESS
        assert cache.getCurrent(buildLocationKey(second)).status == ResourceStatus.IDLE
        assert cache.getCurrent(buildLocationKey(third)).status == ResourceStatus.SUCCESS
        assert len(fetcher.calls) == 3

    @pytest.mark.asyncio
    async def testReadsDoNotRefreshRecency(self, fetcher, clock):
        cache = WeatherResourceCache(fetcher, ttl=300, maxLocations=2, clock=clock)
        first = Location(lat=1.0, lon=1.0)

        await cache.ensureCurrent(first)
        await cache.ensureCurrent(Location(lat=2.0, lon=2.0))
        cache.getCurrent(buildLocationKey(first))
        await cache.ensureCurrent(Location(lat=3.0, lon=3.0))

        assert cache.getCurrent(buildLocationKey(first)).status == ResourceStatus.IDLE

    @pytest.mark.asyncio
    async def testStaleOutcomeDiscarded(self, cache, fetcher):
        """Test an older fetch settling after a newer one does not clobber it"""
        await cache.ensureCurrent(MOSCOW)
        await cache.ensureCurrent(MOSCOW, force=True)
        newest = cache.getResources(KEY)

        cache._applySuccess(KEY, 1, createWeatherBundle(temperature=-5.0))
        cache._applyFailure(KEY, 1, NetworkError("late failure"))

        assert cache.getResources(KEY) == newest

    @pytest.mark.asyncio
    async def testStats(self, cache):
        await cache.ensureCurrent(MOSCOW)

        assert cache.getStats() == {"entries": 1, "inFlight": 0, "ttl": 300, "maxLocations": 256}
