"""
Request Context

The parts of an incoming request that view tracking needs: forwarding
headers, the connection's remote address, user agent and referrer.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from starlette.requests import Request

IPV6_MAPPED_PREFIX = "::ffff:"


@dataclass(frozen=True)
class RequestContext:
    headers: Mapping[str, str] = field(default_factory=dict)
    remote_addr: str | None = None

    def __post_init__(self):
        # Header lookups are case-insensitive
        object.__setattr__(self, "headers", {k.lower(): v for k, v in self.headers.items()})

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            headers=dict(request.headers),
            remote_addr=request.client.host if request.client else None,
        )

    @property
    def client_ip(self) -> str | None:
        """
        First X-Forwarded-For entry, else the remote address, with the
        IPv6-mapped IPv4 prefix removed.
        """
        forwarded = self.headers.get("x-forwarded-for")
        ip = forwarded.split(",")[0].strip() if forwarded else self.remote_addr
        return normalize_ip(ip)

    @property
    def user_agent(self) -> str | None:
        return self.headers.get("user-agent") or None

    @property
    def referrer(self) -> str | None:
        return self.headers.get("referer") or self.headers.get("referrer") or None


def normalize_ip(ip: str | None) -> str | None:
    if not ip:
        return None
    if ip.lower().startswith(IPV6_MAPPED_PREFIX):
        return ip[len(IPV6_MAPPED_PREFIX):]
    return ip
