import logging
from dataclasses import dataclass

from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import BadRequest
from server_name_picker.upstream.ipam import IpamClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IpDecision:
    ip: str
    subnet_id: str
    available: bool


class IpEngine:
    """
    IP availability against phpIPAM.

    Answers are never reserved upstream, so two callers asking about the same
    subnet before anything is allocated can receive the same address.
    """

    def __init__(self, client: IpamClient, cache: TTLCache):
        self.client = client
        self.cache = cache

    def list_subnets(self) -> list[dict]:
        return self.cache.get_or_set("subnets", self.client.list_subnets)

    def get_subnet(self, subnet_id: str) -> dict:
        if not subnet_id:
            raise BadRequest("Subnet ID is required")
        return self.cache.get_or_set(f"subnet:{subnet_id}", lambda: self.client.get_subnet_detail(subnet_id))

    def list_addresses(self) -> list[dict]:
        return self.cache.get_or_set("addresses", self.client.list_addresses)

    def check_ip(self, ip: str | None, subnet_id: str | None) -> IpDecision:
        if not subnet_id:
            raise BadRequest("Subnet ID is required")
        if not ip:
            raise BadRequest("IP address is required")

        # The search spans every subnet, matching phpIPAM's own semantics.
        in_use = self.client.find_address(ip)
        logger.info(f"IP {ip} (subnet {subnet_id}) in_use={in_use}")
        return IpDecision(ip=ip, subnet_id=str(subnet_id), available=not in_use)

    def next_available(self, subnet_id: str | None) -> IpDecision:
        if not subnet_id:
            raise BadRequest("Subnet ID is required")

        ip = self.client.next_free_address(str(subnet_id))
        logger.info(f"Next free IP in subnet {subnet_id}: {ip}")
        return IpDecision(ip=ip, subnet_id=str(subnet_id), available=True)
