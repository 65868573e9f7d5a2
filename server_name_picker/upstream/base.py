import enum
import logging
from typing import Any

import requests

from server_name_picker.common import config
from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import UpstreamAuthFailed, UpstreamUnavailable

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class AuthState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class UpstreamClient:
    """
    Authenticated JSON client for an inventory system of record.

    Credentials are obtained lazily and kept in the cache under "token". A 401
    answer moves the client back to UNAUTHENTICATED and allows exactly one
    re-login and retry for that call; nothing else is retried here.
    """

    name = "upstream"
    token_ttl: float = config.CACHE_TTL

    def __init__(
        self,
        base_url: str,
        cache: TTLCache,
        session: requests.Session | None = None,
        timeout: float = config.UPSTREAM_TIMEOUT_S,
        verify_ssl: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.session = session or requests.Session()
        self.session.verify = verify_ssl
        self.timeout = timeout
        self.state = AuthState.UNAUTHENTICATED

    # Subclasses provide these two.
    def _login(self) -> Any:
        raise NotImplementedError

    def _auth_kwargs(self, credential: Any) -> dict:
        raise NotImplementedError

    def _credential(self) -> Any:
        credential = self.cache.get(TOKEN_KEY)
        if credential is None:
            self.state = AuthState.UNAUTHENTICATED
            logger.info(f"{self.name}: authenticating")
            credential = self._login()
            self.cache.set(TOKEN_KEY, credential, ttl=self.token_ttl)
        self.state = AuthState.AUTHENTICATED
        return credential

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise UpstreamUnavailable(f"{self.name} timeout: {method} {path}") from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"{self.name} error: {method} {path}: {exc}") from exc

    def request(self, method: str, path: str, allow_status: tuple = (), **kwargs) -> requests.Response:
        """
        Send an authenticated request and return the response.

        Statuses listed in allow_status are handed back to the caller instead
        of raising UpstreamUnavailable.
        """
        resp = self._send(method, path, **{**kwargs, **self._auth_kwargs(self._credential())})

        if resp.status_code == 401:
            logger.warning(f"{self.name}: 401 on {method} {path}, re-authenticating once")
            self.cache.evict(TOKEN_KEY)
            self.state = AuthState.UNAUTHENTICATED
            resp = self._send(method, path, **{**kwargs, **self._auth_kwargs(self._credential())})
            if resp.status_code == 401:
                self.state = AuthState.UNAUTHENTICATED
                self.cache.evict(TOKEN_KEY)
                raise UpstreamAuthFailed(f"{self.name} rejected the service credentials twice for {method} {path}")

        if resp.status_code in allow_status:
            return resp
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"{self.name} returned {resp.status_code} for {method} {path}")
        return resp

    def get_data(self, path: str, allow_status: tuple = (), **kwargs) -> Any:
        """GET path and unwrap the {"data": ...} envelope both upstreams use."""
        resp = self.request("GET", path, allow_status=allow_status, **kwargs)
        if resp.status_code in allow_status:
            return None
        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"{self.name} returned non-JSON body for GET {path}") from exc
        return body.get("data") if isinstance(body, dict) else body
