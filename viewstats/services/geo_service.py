"""
Geo Service

Best-effort IP geolocation against a local MaxMind City database. Private and
loopback addresses are never looked up, and no lookup failure ever reaches
the caller: every failure path returns an empty location.
"""

import ipaddress
import logging
import os
from dataclasses import dataclass

import geoip2.database
import geoip2.errors

from viewstats.constants import country_name_for
from viewstats.utils.metrics import record_geo_lookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoLocation:
    country_code: str | None = None
    country_name: str | None = None
    city: str | None = None
    region: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.country_code is None and self.city is None and self.region is None


EMPTY_LOCATION = GeoLocation()


def _is_private(addr: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return addr.is_loopback or addr.is_private or addr.is_link_local


def is_private_ip(ip: str) -> bool:
    """True for loopback, private and link-local addresses, and for anything unparseable."""
    try:
        return _is_private(ipaddress.ip_address(ip))
    except ValueError:
        return True


class GeoResolver:
    """
    Maps IP addresses to country/region/city.

    `reader` is anything with a geoip2-style `city(ip)` method; when omitted
    and `database_path` points at an existing .mmdb file, a
    `geoip2.database.Reader` is opened on it. Without either, every lookup
    resolves to an empty location.
    """

    def __init__(self, database_path: str | None = None, reader=None):
        self._reader = reader
        self._owns_reader = False
        if self._reader is None and database_path:
            if os.path.exists(database_path):
                try:
                    self._reader = geoip2.database.Reader(database_path)
                    self._owns_reader = True
                    logger.info(f"GeoIP database loaded from {database_path}")
                except Exception as e:
                    logger.error(f"Could not open GeoIP database {database_path}: {e}")
            else:
                logger.warning(f"GeoIP database not found at {database_path}; geolocation disabled")

    @property
    def enabled(self) -> bool:
        return self._reader is not None

    def resolve(self, ip: str | None) -> GeoLocation:
        if not ip:
            return EMPTY_LOCATION

        try:
            addr = ipaddress.ip_address(ip)
        except ValueError:
            record_geo_lookup("invalid")
            logger.debug(f"Not an IP address, skipping geolocation: {ip!r}")
            return EMPTY_LOCATION

        if _is_private(addr):
            record_geo_lookup("skipped")
            return EMPTY_LOCATION

        if self._reader is None:
            record_geo_lookup("skipped")
            return EMPTY_LOCATION

        try:
            response = self._reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            record_geo_lookup("not_found")
            logger.debug(f"No GeoIP record for {ip}")
            return EMPTY_LOCATION
        except Exception as e:
            record_geo_lookup("error")
            logger.error(f"Error getting location for IP {ip}: {e}", exc_info=True)
            return EMPTY_LOCATION

        country_code = response.country.iso_code or None
        location = GeoLocation(
            country_code=country_code,
            country_name=country_name_for(country_code),
            city=response.city.name or None,
            region=response.subdivisions.most_specific.iso_code or None,
        )
        record_geo_lookup("resolved")
        return location

    def close(self) -> None:
        if self._owns_reader and self._reader is not None:
            self._reader.close()
            self._reader = None
