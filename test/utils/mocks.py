"""
Mock utilities for testing complex dependencies

Provides mock implementations for:
- The wall clock
- The MaxMind GeoIP reader
- View stores and resource directories whose operations fail
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import geoip2.errors
from sqlalchemy.exc import OperationalError

from viewstats.stores.base import ResourceDirectory, ViewFilter, ViewStore


class FakeClock:
    """Callable returning a controllable naive UTC time"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeGeoReader:
    """
    Stand-in for `geoip2.database.Reader` answering from a dict of
    ip -> (country_code, city, region). Unknown addresses raise
    AddressNotFoundError like the real reader.
    """

    def __init__(self, records: dict[str, tuple[str | None, str | None, str | None]]):
        self.records = records
        self.lookups: list[str] = []
        self.closed = False

    def city(self, ip: str):
        self.lookups.append(ip)
        if ip not in self.records:
            raise geoip2.errors.AddressNotFoundError(f"The address {ip} is not in the database.")
        country_code, city, region = self.records[ip]
        return SimpleNamespace(
            country=SimpleNamespace(iso_code=country_code),
            city=SimpleNamespace(name=city),
            subdivisions=SimpleNamespace(most_specific=SimpleNamespace(iso_code=region)),
        )

    def close(self):
        self.closed = True


class BrokenGeoReader:
    """GeoIP reader whose database file is corrupt"""

    def city(self, ip: str):
        raise ValueError("Invalid database metadata")


def source_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


class FailingViewStore(ViewStore):
    """View store whose every operation fails with a database error"""

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise source_error()

    async def has_recent_view(self, resource_type, resource_id, since, viewer_user_id=None, ip_address=None):
        self._fail()

    async def add(self, record):
        self._fail()

    async def count_views(self, view_filter: ViewFilter) -> int:
        self._fail()

    async def count_views_by_resource_type(self, owner_user_id: str) -> dict[str, int]:
        self._fail()

    async def top_countries(self, view_filter: ViewFilter, limit: int):
        self._fail()

    async def views_per_day(self, view_filter: ViewFilter, since: datetime):
        self._fail()


class FailingWritesViewStore(ViewStore):
    """Delegates reads to a real view store and fails on insert"""

    def __init__(self, inner: ViewStore):
        self.inner = inner

    async def has_recent_view(self, *args, **kwargs):
        return await self.inner.has_recent_view(*args, **kwargs)

    async def add(self, record):
        raise source_error()

    async def count_views(self, view_filter):
        return await self.inner.count_views(view_filter)

    async def count_views_by_resource_type(self, owner_user_id):
        return await self.inner.count_views_by_resource_type(owner_user_id)

    async def top_countries(self, view_filter, limit):
        return await self.inner.top_countries(view_filter, limit)

    async def views_per_day(self, view_filter, since):
        return await self.inner.views_per_day(view_filter, since)


class FailingResourceDirectory(ResourceDirectory):
    """Resource directory whose database is unreachable"""

    async def exists(self, entity_type, entity_id) -> bool:
        raise source_error()

    async def owner_of(self, resource_type, resource_id) -> str | None:
        raise source_error()
