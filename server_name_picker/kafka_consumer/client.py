import json
import logging
import threading
import time
import uuid
from typing import Any

from confluent_kafka import Consumer, KafkaError

from server_name_picker.common import config
from server_name_picker.common.ids import new_request_id
from server_name_picker.kafka_consumer.producer import ResponseProducer

logger = logging.getLogger(__name__)


class CorrelatingClient:
    """
    Request originator for one request/response topic pair.

    Publishes a request with a fresh requestId and waits for the response
    carrying the same id. Responses for other requests are skipped. Silence
    until the timeout is reported as None.
    """

    def __init__(
        self,
        request_topic: str,
        response_topic: str,
        bootstrap_servers: str = config.KAFKA_BOOTSTRAP,
        producer: ResponseProducer | None = None,
        consumer: Any = None,
    ):
        self.request_topic = request_topic
        self.response_topic = response_topic
        self.producer = producer or ResponseProducer(bootstrap_servers)
        # Private group so every client sees every response.
        self.consumer = consumer or Consumer({
            "bootstrap.servers": bootstrap_servers,
            "group.id": f"picker-client-{uuid.uuid4().hex[:8]}",
            "auto.offset.reset": "latest",
            "enable.auto.commit": True,
        })
        self._assigned = threading.Event()

    def _on_assign(self, consumer, partitions):
        logger.debug(f"Assigned {len(partitions)} partition(s) of '{self.response_topic}'")
        self._assigned.set()

    def start(self, timeout: float = 10.0) -> None:
        """Subscribe and wait for partitions so no early response is missed."""
        self.consumer.subscribe([self.response_topic], on_assign=self._on_assign)
        deadline = time.monotonic() + timeout
        while not self._assigned.is_set() and time.monotonic() < deadline:
            self.consumer.poll(timeout=0.2)
        if not self._assigned.is_set():
            raise RuntimeError(f"No partitions of '{self.response_topic}' assigned within {timeout}s")

    def request(self, payload: dict, timeout: float = 10.0, key: str | None = None) -> dict | None:
        request_id = payload.get("requestId") or new_request_id()
        message = {**payload, "requestId": request_id}
        if not self.producer.publish(self.request_topic, key or request_id, message):
            logger.error(f"Could not publish request {request_id} to '{self.request_topic}'")
            return None
        return self.wait_for(request_id, timeout)

    def wait_for(self, request_id: str, timeout: float) -> dict | None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            msg = self.consumer.poll(timeout=min(1.0, max(deadline - time.monotonic(), 0.0)))
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() != KafkaError._PARTITION_EOF:
                    logger.error(f"Consumer error on '{self.response_topic}': {msg.error()}")
                continue
            try:
                response = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping undecodable response: {e}")
                continue
            if isinstance(response, dict) and response.get("requestId") == request_id:
                return response

        logger.warning(f"No response for {request_id} on '{self.response_topic}' within {timeout}s")
        return None

    def check_hostname(self, hostname: str, prefix: str | None = None, timeout: float = 10.0) -> dict | None:
        payload = {"hostname": hostname}
        if prefix:
            payload["prefix"] = prefix
        return self.request(payload, timeout=timeout)

    def check_ip(self, subnet_id: str, ip: str | None = None, timeout: float = 10.0) -> dict | None:
        payload = {"subnetId": subnet_id}
        if ip:
            payload["ip"] = ip
        return self.request(payload, timeout=timeout)

    def close(self):
        self.consumer.close()
        self.producer.close()
