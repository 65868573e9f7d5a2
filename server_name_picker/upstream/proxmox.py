import logging

import requests

from server_name_picker.common import config
from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import UpstreamAuthFailed, UpstreamUnavailable
from server_name_picker.upstream.base import UpstreamClient

logger = logging.getLogger(__name__)


class ProxmoxClient(UpstreamClient):
    """Proxmox VE API client: cluster VM list, nodes, per-node QEMU guests."""

    name = "proxmox"
    token_ttl = config.PROXMOX_TICKET_TTL

    def __init__(
        self,
        cache: TTLCache,
        base_url: str = config.PROXMOX_API_URL,
        token_name: str = config.PROXMOX_API_TOKEN_NAME,
        token_value: str = config.PROXMOX_API_TOKEN_VALUE,
        username: str = config.PROXMOX_USERNAME,
        password: str = config.PROXMOX_PASSWORD,
        session: requests.Session | None = None,
        timeout: float = config.UPSTREAM_TIMEOUT_S,
        verify_ssl: bool = config.PROXMOX_API_VERIFY_SSL,
    ):
        has_token = bool(token_name and token_value)
        has_password = bool(username and password)
        if has_token == has_password:
            raise ValueError("Proxmox needs either an API token or a username/password, not both")

        super().__init__(base_url, cache, session=session, timeout=timeout, verify_ssl=verify_ssl)
        self.token_name = token_name
        self.token_value = token_value
        self.username = username
        self.password = password

    def _login(self) -> str:
        if self.token_name:
            return f"PVEAPIToken={self.token_name}={self.token_value}"

        resp = self._send(
            "POST",
            "/access/ticket",
            data={"username": self.username, "password": self.password},
        )
        if resp.status_code in (401, 403):
            raise UpstreamAuthFailed("Proxmox rejected username/password")
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"Proxmox ticket request failed with {resp.status_code}")
        try:
            return resp.json()["data"]["ticket"]
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamUnavailable("Proxmox ticket response had no ticket") from exc

    def _auth_kwargs(self, credential: str) -> dict:
        if credential.startswith("PVEAPIToken="):
            return {"headers": {"Authorization": credential}}
        return {"cookies": {"PVEAuthCookie": credential}}

    def list_hosts(self) -> list[dict]:
        vms = self.get_data("/cluster/resources", params={"type": "vm"}) or []
        return [
            {
                "id": vm.get("vmid"),
                "name": vm.get("name") or "",
                "node": vm.get("node"),
                "status": vm.get("status"),
            }
            for vm in vms
        ]

    def list_nodes(self) -> list[dict]:
        return self.get_data("/nodes") or []

    def list_vms(self) -> list[dict]:
        vms = []
        for node in self.list_nodes():
            vms.extend(self.get_data(f"/nodes/{node['node']}/qemu") or [])
        logger.debug(f"Collected {len(vms)} QEMU guests across nodes")
        return vms
