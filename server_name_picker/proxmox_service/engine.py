import logging
import re
from dataclasses import dataclass, field

from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import BadRequest
from server_name_picker.upstream.proxmox import ProxmoxClient

logger = logging.getLogger(__name__)

SUGGESTION_COUNT = 3


@dataclass(frozen=True)
class HostnameDecision:
    hostname: str
    available: bool
    suggestions: list[str] = field(default_factory=list)


def normalize(name: str) -> str:
    return name.strip().casefold()


def suggest_hostnames(names: list[str], prefix: str, count: int = SUGGESTION_COUNT) -> list[str]:
    """
    Next `count` names after the highest <prefix><digits> in use.

    Names carrying the prefix with a non-numeric tail are ignored; with no
    numbered name at all numbering starts at 1.
    """
    wanted = normalize(prefix)
    pattern = re.compile(rf"^{re.escape(wanted)}(\d+)$")

    highest = 0
    for name in names:
        candidate = normalize(name)
        if not candidate.startswith(wanted):
            continue
        match = pattern.match(candidate)
        if match:
            highest = max(highest, int(match.group(1)))

    return [f"{prefix}{highest + i}" for i in range(1, count + 1)]


class HostnameEngine:
    """Hostname availability against the Proxmox VM list."""

    def __init__(self, client: ProxmoxClient, cache: TTLCache):
        self.client = client
        self.cache = cache

    def list_hosts(self) -> list[dict]:
        return self.cache.get_or_set("hosts", self.client.list_hosts)

    def list_nodes(self) -> list[dict]:
        return self.cache.get_or_set("nodes", self.client.list_nodes)

    def list_vms(self) -> list[dict]:
        return self.cache.get_or_set("vms", self.client.list_vms)

    def check(self, hostname: str | None, prefix: str | None = None) -> HostnameDecision:
        if not hostname or not hostname.strip():
            raise BadRequest("Hostname is required")

        names = [host["name"] for host in self.list_hosts()]
        wanted = normalize(hostname)
        taken = any(normalize(name) == wanted for name in names)

        if not taken:
            return HostnameDecision(hostname=hostname, available=True)

        prefix = prefix.strip() if prefix else ""
        suggestions = suggest_hostnames(names, prefix) if prefix else []
        logger.info(f"Hostname '{hostname}' is in use; suggestions={suggestions}")
        return HostnameDecision(hostname=hostname, available=False, suggestions=suggestions)
