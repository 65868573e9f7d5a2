import json

import pytest

from server_name_picker.common.cache import TTLCache
from server_name_picker.common.errors import NoCapacity, UpstreamUnavailable


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    """Stands in for requests.Session: routes (method, path) to queued responses."""

    def __init__(self):
        self.verify = True
        self.routes: dict[tuple[str, str], list] = {}
        self.calls: list[dict] = []

    def add(self, method: str, path: str, *responses):
        self.routes.setdefault((method, path), []).extend(responses)

    def request(self, method, url, timeout=None, **kwargs):
        path = url.split("://", 1)[-1]
        path = path[path.index("/"):] if "/" in path else "/"
        self.calls.append({"method": method, "url": url, "path": path, **kwargs})
        for (m, suffix), queue in self.routes.items():
            if m == method and path.endswith(suffix) and queue:
                response = queue[0] if len(queue) == 1 else queue.pop(0)
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, {"message": "not routed"})


class FakeProxmox:
    base_url = "https://pve.test/api2/json"

    def __init__(self, names=(), error: Exception | None = None):
        self.names = list(names)
        self.error = error
        self.calls = 0

    def list_hosts(self):
        self.calls += 1
        if self.error:
            raise self.error
        return [{"id": 100 + i, "name": n, "node": "pve1", "status": "running"} for i, n in enumerate(self.names)]

    def list_nodes(self):
        return [{"node": "pve1", "status": "online"}]

    def list_vms(self):
        return [{"vmid": 100 + i, "name": n} for i, n in enumerate(self.names)]


class FakeIpam:
    base_url = "https://ipam.test/api"

    def __init__(self, used=(), free: dict | None = None, error: Exception | None = None):
        self.used = set(used)
        self.free = free or {}
        self.error = error
        self.searches = []

    def list_subnets(self):
        return [{"id": "10", "cidr": "10.0.0.0/24", "description": "servers"}]

    def get_subnet_detail(self, subnet_id):
        return {"id": subnet_id, "cidr": "10.0.0.0/24", "description": "servers", "addresses": []}

    def list_addresses(self):
        return [{"ip": ip} for ip in sorted(self.used)]

    def find_address(self, ip):
        self.searches.append(ip)
        if self.error:
            raise self.error
        return ip in self.used

    def next_free_address(self, subnet_id):
        if self.error:
            raise self.error
        ip = self.free.get(subnet_id)
        if ip is None:
            raise NoCapacity(f"Subnet {subnet_id} has no free addresses")
        return ip


class FakeError:
    def __init__(self, code):
        self._code = code

    def code(self):
        return self._code


class FakeMessage:
    def __init__(self, value, key=b"k1", topic="hostname-requests", partition=0, offset=0, error=None):
        if isinstance(value, dict):
            value = json.dumps(value).encode("utf-8")
        elif isinstance(value, str):
            value = value.encode("utf-8")
        self._value = value
        self._key = key
        self._topic = topic
        self._partition = partition
        self._offset = offset
        self._error = error

    def value(self):
        return self._value

    def key(self):
        return self._key

    def topic(self):
        return self._topic

    def partition(self):
        return self._partition

    def offset(self):
        return self._offset

    def error(self):
        return self._error


class FakeKafkaConsumer:
    """Replays a fixed list of messages, then reports no more."""

    def __init__(self, messages=()):
        self.queue = list(messages)
        self.subscribed = []
        self.committed = []
        self.seeks = []
        self.closed = False
        self.on_empty = None

    def subscribe(self, topics, on_assign=None):
        self.subscribed.extend(topics)
        if on_assign:
            on_assign(self, [])

    def poll(self, timeout=None):
        if self.queue:
            return self.queue.pop(0)
        if self.on_empty:
            self.on_empty()
        return None

    def commit(self, message=None, asynchronous=True):
        self.committed.append(message)

    def seek(self, partition):
        self.seeks.append(partition)

    def close(self):
        self.closed = True


class FakeProducer:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.published = []
        self.closed = False

    def publish(self, topic, key, payload):
        self.published.append((topic, key, payload))
        return self.ok

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(default_ttl=300, clock=clock)


@pytest.fixture
def upstream_down():
    return UpstreamUnavailable("proxmox returned 503 for GET /cluster/resources")
