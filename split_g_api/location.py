import ipaddress
import logging
from collections import namedtuple

import requests

logger = logging.getLogger(__name__)

Location = namedtuple("Location", ["city", "region", "country", "country_code"])

UNKNOWN = Location("Unknown", "Unknown", "Unknown", "Unknown")

# Fly.io first since that is where the app is hosted.
IP_HEADERS = [
    "Fly-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "CF-Connecting-IP",
    "X-Client-IP",
    "Fastly-Client-IP",
]


def client_ip(headers, remote_addr=None):
    """Best guess at the caller's public IP from proxy headers."""
    for name in IP_HEADERS:
        value = headers.get(name)
        if not value:
            continue
        if name == "X-Forwarded-For":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return remote_addr or "unknown"


def _is_public(ip):
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_global


class GeoLocator:
    def __init__(self, base_url="https://ipapi.co", timeout=10, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(config.geolocation_url, timeout=config.request_timeout)

    def lookup(self, ip):
        """City/region/country for an IP. Never raises; falls back to Unknown."""
        if not _is_public(ip):
            return UNKNOWN

        try:
            response = self.session.get(f"{self.base_url}/{ip}/json/", timeout=self.timeout)
            if response.status_code != 200:
                logger.warning("Location lookup for %s failed: HTTP %s", ip, response.status_code)
                return UNKNOWN
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Location lookup for %s failed: %s", ip, e)
            return UNKNOWN

        if not isinstance(data, dict) or data.get("error"):
            return UNKNOWN

        return Location(
            city=data.get("city") or "Unknown",
            region=data.get("region") or "Unknown",
            country=data.get("country_name") or "Unknown",
            country_code=data.get("country_code") or "Unknown",
        )
