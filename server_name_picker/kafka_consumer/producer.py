import json
import logging

from confluent_kafka import Producer
from confluent_kafka.error import KafkaException

from server_name_picker.common import config

logger = logging.getLogger(__name__)


class ResponseProducer:
    def __init__(self, bootstrap_servers: str = config.KAFKA_BOOTSTRAP, producer: Producer | None = None):
        self.bootstrap_servers = bootstrap_servers
        self.producer = producer or Producer({
            "bootstrap.servers": bootstrap_servers,
            "acks": "all",  # All replicas must acknowledge
            "retries": 3,
        })

    def publish(self, topic: str, key: bytes | str | None, payload: dict) -> bool:
        """
        Publish one JSON message and wait for its delivery report.

        Returns:
            True if the broker acknowledged the message, False otherwise
        """
        failures = []

        def delivery_report(err, msg):
            if err is not None:
                failures.append(err)
                logger.error(f"Message delivery failed: {err}")
            else:
                logger.debug(f"Message delivered to {msg.topic()} [{msg.partition()}]")

        if isinstance(key, str):
            key = key.encode("utf-8")

        try:
            self.producer.produce(
                topic=topic,
                key=key,
                value=json.dumps(payload).encode("utf-8"),
                callback=delivery_report,
            )
            pending = self.producer.flush(timeout=5)
        except KafkaException as e:
            logger.error(f"Kafka error publishing to {topic}: {e}")
            return False
        except BufferError as e:
            logger.error(f"Producer queue full publishing to {topic}: {e}")
            return False

        if pending:
            logger.error(f"{pending} message(s) still undelivered to {topic} after flush")
            return False
        return not failures

    def close(self):
        """Flush anything still queued."""
        self.producer.flush()
