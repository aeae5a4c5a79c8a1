"""
Metadata source adapter.

This is the only module that knows whether the process runs on Google
Compute Engine (or GKE). Everything else sees each metadata field as an
optional value: ``fetch(field)`` returns a ``FieldValue`` whose
``available`` flag is False when the environment cannot provide it.

Lookups against the metadata server are bounded by a timeout. When the
server is absent, IP addresses fall back to a scan of the local network
interfaces.
"""

import ipaddress
import socket
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

import httpx
import psutil

from hostmeta.utils.logging_config import get_logger


logger = get_logger("hostmeta.metadata")

FIELDS = (
    "hostname",
    "instance_id",
    "project_id",
    "zone",
    "internal_ip",
    "external_ip",
)

METADATA_FLAVOR = "Google"

_PROVIDER_PATHS = {
    "hostname": "instance/hostname",
    "instance_id": "instance/id",
    "project_id": "project/project-id",
    "zone": "instance/zone",
    "internal_ip": "instance/network-interfaces/0/ip",
    "external_ip": "instance/network-interfaces/0/access-configs/0/external-ip",
}


class FieldValue(NamedTuple):
    value: str
    available: bool


MISSING = FieldValue("", False)


def classify_addresses(addresses: Iterable[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split host addresses into (internal, external).

    Internal is the first private address, external the first non-private
    one. Loopback, link-local, unspecified and multicast addresses are
    never candidates. Either side is None when nothing qualifies.
    """
    internal: Optional[str] = None
    external: Optional[str] = None

    for raw in addresses:
        # IPv6 link-local addresses come with a scope suffix ("fe80::1%eth0")
        try:
            addr = ipaddress.ip_address(raw.split("%", 1)[0])
        except ValueError:
            continue

        if addr.is_loopback or addr.is_link_local or addr.is_unspecified or addr.is_multicast:
            continue

        if addr.is_private:
            if internal is None:
                internal = str(addr)
        elif external is None:
            external = str(addr)

        if internal is not None and external is not None:
            break

    return internal, external


def interface_addresses() -> List[str]:
    """All interface addresses on this host, IPv4 first, in psutil's order."""
    ipv4: List[str] = []
    ipv6: List[str] = []

    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family == socket.AF_INET:
                ipv4.append(addr.address)
            elif addr.family == socket.AF_INET6:
                ipv6.append(addr.address)

    return ipv4 + ipv6


class MetadataSource:
    """
    Best-effort metadata lookups for one snapshot build.

    An instance is meant to live for a single request: it probes the
    metadata server at most once and remembers the answer only for its own
    lifetime. Use it as a context manager so the HTTP client is closed.
    """

    def __init__(
        self,
        host: str,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
        list_addresses: Callable[[], List[str]] = interface_addresses,
    ) -> None:
        self._client = httpx.Client(
            base_url=f"http://{host}/computeMetadata/v1/",
            headers={"Metadata-Flavor": METADATA_FLAVOR},
            timeout=timeout,
            transport=transport,
        )
        self._list_addresses = list_addresses
        self._on_platform: Optional[bool] = None
        self._interfaces: Optional[Tuple[Optional[str], Optional[str]]] = None
        self._getters: Dict[str, Callable[[], FieldValue]] = {
            "hostname": self._hostname,
            "instance_id": lambda: self._from_provider("instance_id"),
            "project_id": lambda: self._from_provider("project_id"),
            "zone": self._zone,
            "internal_ip": lambda: self._ip("internal_ip", 0),
            "external_ip": lambda: self._ip("external_ip", 1),
        }

    def __enter__(self) -> "MetadataSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, field: str) -> FieldValue:
        """Look up one field; never raises for an unavailable value."""
        try:
            getter = self._getters[field]
        except KeyError:
            raise ValueError(f"unknown metadata field: {field!r}") from None
        return getter()

    def on_platform(self) -> bool:
        """Whether a metadata server answers as GCE's does."""
        if self._on_platform is None:
            try:
                response = self._client.get("")
            except httpx.HTTPError as exc:
                logger.debug(
                    "Metadata server not reachable",
                    extra={"event_type": "metadata_probe", "reason": str(exc)},
                )
                self._on_platform = False
            else:
                self._on_platform = (
                    response.headers.get("Metadata-Flavor") == METADATA_FLAVOR
                )
        return self._on_platform

    def _query(self, path: str) -> Optional[str]:
        if not self.on_platform():
            return None

        try:
            response = self._client.get(path)
        except httpx.HTTPError as exc:
            logger.debug(
                "Metadata lookup failed",
                extra={"event_type": "metadata_lookup", "path": path, "reason": str(exc)},
            )
            return None

        if response.status_code != 200:
            return None

        value = response.text.strip()
        return value or None

    def _from_provider(self, field: str) -> FieldValue:
        value = self._query(_PROVIDER_PATHS[field])
        if value is None:
            return MISSING
        return FieldValue(value, True)

    def _hostname(self) -> FieldValue:
        try:
            name = socket.gethostname()
        except OSError:
            name = ""
        if name:
            return FieldValue(name, True)
        return self._from_provider("hostname")

    def _zone(self) -> FieldValue:
        found = self._from_provider("zone")
        if not found.available:
            return found
        # "projects/123456/zones/us-central1-a"
        return FieldValue(found.value.rsplit("/", 1)[-1], True)

    def _ip(self, field: str, index: int) -> FieldValue:
        found = self._from_provider(field)
        if found.available:
            return found

        if self._interfaces is None:
            try:
                self._interfaces = classify_addresses(self._list_addresses())
            except OSError as exc:
                logger.debug(
                    "Interface enumeration failed",
                    extra={"event_type": "interface_scan", "reason": str(exc)},
                )
                self._interfaces = (None, None)

        address = self._interfaces[index]
        if address is None:
            return MISSING
        return FieldValue(address, True)
