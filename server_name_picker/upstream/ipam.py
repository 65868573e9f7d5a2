import logging

import requests

from server_name_picker.common import config
from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import NoCapacity, UpstreamAuthFailed, UpstreamUnavailable
from server_name_picker.upstream.base import UpstreamClient

logger = logging.getLogger(__name__)


def normalize_subnet(raw: dict) -> dict:
    subnet = raw.get("subnet")
    mask = raw.get("mask")
    return {
        "id": str(raw.get("id")),
        "cidr": f"{subnet}/{mask}" if subnet and mask else subnet,
        "description": raw.get("description") or "",
    }


class IpamClient(UpstreamClient):
    """phpIPAM REST client scoped to one API application id."""

    name = "phpipam"
    token_ttl = config.IPAM_TOKEN_TTL

    def __init__(
        self,
        cache: TTLCache,
        base_url: str = config.PHPIPAM_API_URL,
        app_id: str = config.PHPIPAM_API_APP_ID,
        token: str = config.PHPIPAM_API_TOKEN,
        username: str = config.PHPIPAM_API_USERNAME,
        password: str = config.PHPIPAM_API_PASSWORD,
        session: requests.Session | None = None,
        timeout: float = config.UPSTREAM_TIMEOUT_S,
        verify_ssl: bool = config.PHPIPAM_API_VERIFY_SSL,
    ):
        if bool(token) == bool(username and password):
            raise ValueError("phpIPAM needs either an API token or a username/password, not both")

        super().__init__(base_url, cache, session=session, timeout=timeout, verify_ssl=verify_ssl)
        self.app_id = app_id
        self.token = token
        self.username = username
        self.password = password

    def _login(self) -> str:
        if self.token:
            return self.token

        resp = self._send("POST", f"/{self.app_id}/user/", auth=(self.username, self.password))
        if resp.status_code in (401, 403):
            raise UpstreamAuthFailed("phpIPAM rejected username/password")
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"phpIPAM login failed with {resp.status_code}")
        try:
            return resp.json()["data"]["token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamUnavailable("phpIPAM login response had no token") from exc

    def _auth_kwargs(self, credential: str) -> dict:
        return {"headers": {"token": credential}}

    def list_subnets(self) -> list[dict]:
        return [normalize_subnet(s) for s in self.get_data(f"/{self.app_id}/subnets/") or []]

    def get_subnet_detail(self, subnet_id: str) -> dict:
        subnet = self.get_data(f"/{self.app_id}/subnets/{subnet_id}/")
        if not subnet:
            raise UpstreamUnavailable(f"phpIPAM returned no data for subnet {subnet_id}")
        # phpIPAM answers 404 for a subnet without addresses.
        addresses = self.get_data(f"/{self.app_id}/subnets/{subnet_id}/addresses/", allow_status=(404,))
        return {**normalize_subnet(subnet), "addresses": addresses or []}

    def list_addresses(self) -> list[dict]:
        return self.get_data(f"/{self.app_id}/addresses/") or []

    def find_address(self, ip: str) -> bool:
        """True if any allocated address record matches ip, in any subnet."""
        records = self.get_data(f"/{self.app_id}/addresses/search/{ip}/", allow_status=(404,))
        return bool(records)

    def next_free_address(self, subnet_id: str) -> str:
        path = f"/{self.app_id}/subnets/{subnet_id}/first_free/"
        resp = self.request("GET", path, allow_status=(404,))
        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"phpIPAM returned non-JSON body for GET {path}") from exc
        if not isinstance(body, dict):
            body = {"data": body}

        message = str(body.get("message", "")).lower()
        if resp.status_code == 404 and "free" not in message:
            raise UpstreamUnavailable(f"phpIPAM returned 404 for {path}: {body.get('message')}")

        ip = body.get("data")
        if not ip:
            logger.warning(f"phpIPAM reports subnet {subnet_id} exhausted")
            raise NoCapacity(f"Subnet {subnet_id} has no free addresses")
        return ip
