import json
import logging
import threading
import time
from typing import Any, Callable, Iterator

from confluent_kafka import Consumer, KafkaError, TopicPartition
from pydantic import BaseModel

from server_name_picker.common import config
from server_name_picker.kafka_consumer.producer import ResponseProducer

logger = logging.getLogger(__name__)

Handler = Callable[[dict], BaseModel | None]


class TopicConsumer:
    """
    One topic, one consumer group, one lane.

    For each inbound message: decode, call the handler, publish at most one
    response under the inbound key, then commit. The offset is committed only
    after the response is acknowledged, so a crash in between means
    redelivery (handlers are read-only and safe to repeat).
    """

    def __init__(
        self,
        topic: str,
        handler: Handler,
        producer: ResponseProducer | None = None,
        response_topic: str | None = None,
        bootstrap_servers: str = config.KAFKA_BOOTSTRAP,
        group_id: str | None = None,
        consumer: Any = None,
        poll_timeout: float = 1.0,
    ):
        if response_topic and producer is None:
            raise ValueError(f"Topic '{topic}' has a response topic but no producer")

        self.topic = topic
        self.handler = handler
        self.producer = producer
        self.response_topic = response_topic
        self.group_id = group_id or f"{config.KAFKA_GROUP_ID}-{topic}"
        self.poll_timeout = poll_timeout
        self._stopping = threading.Event()

        # Manual commit; new groups start from new messages only.
        self.consumer = consumer or Consumer({
            "bootstrap.servers": bootstrap_servers,
            "group.id": self.group_id,
            "auto.offset.reset": "latest",
            "enable.auto.commit": False,
        })

        logger.info(f"TopicConsumer init: topic={self.topic} group_id={self.group_id} response_topic={self.response_topic}")

    def start(self):
        """Subscribe to the topic."""
        max_retries = 6
        for attempt in range(max_retries):
            try:
                self.consumer.subscribe([self.topic])
                logger.info(f"Subscribed to '{self.topic}'")
                return
            except Exception as e:
                logger.warning(f"Subscribe attempt {attempt+1}/{max_retries} for '{self.topic}' failed: {e}")
                time.sleep(2)
        raise RuntimeError(f"Failed to subscribe to topic '{self.topic}'")

    def stop(self):
        """Stop after the message in hand has been handled."""
        self._stopping.set()

    def messages(self) -> Iterator[Any]:
        """Lazily yield inbound messages until stop() is called."""
        while not self._stopping.is_set():
            msg = self.consumer.poll(timeout=self.poll_timeout)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                logger.error(f"Consumer error on '{self.topic}': {msg.error()}")
                continue
            yield msg

    def process(self, msg) -> bool:
        """Handle one message. Returns True when its offset was committed."""
        try:
            payload = json.loads(msg.value().decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
            logger.error(f"Undecodable message on '{self.topic}', skipping: {e}")
            self.consumer.commit(message=msg, asynchronous=False)
            return True
        if not isinstance(payload, dict):
            logger.error(f"Message on '{self.topic}' is not a JSON object, skipping: {payload!r}")
            self.consumer.commit(message=msg, asynchronous=False)
            return True

        response = self.handler(payload)

        if response is not None and self.response_topic:
            if not self.producer.publish(self.response_topic, msg.key(), response.model_dump()):
                logger.warning(f"Publish to '{self.response_topic}' failed; rewinding so the request is redelivered")
                self.rewind(msg)
                return False

        self.consumer.commit(message=msg, asynchronous=False)
        return True

    def rewind(self, msg):
        """Seek back to msg so the next poll delivers it again."""
        self.consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))

    def run(self):
        """Main loop. Commit offsets only after a successful publish."""
        self.start()
        try:
            for msg in self.messages():
                try:
                    self.process(msg)
                except Exception as e:
                    logger.exception(f"Unexpected processing error on '{self.topic}': {e}")
                    self.rewind(msg)
        finally:
            self.consumer.close()
            logger.info(f"Consumer for '{self.topic}' closed")
