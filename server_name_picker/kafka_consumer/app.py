import logging
import signal
import threading
from functools import partial
from typing import Any, Callable

from server_name_picker.common import config
from server_name_picker.common.cache import TTLCache
from server_name_picker.common.logs import configure_logging
from server_name_picker.ipam_service.engine import IpEngine
from server_name_picker.kafka_consumer.consumer import TopicConsumer
from server_name_picker.kafka_consumer.handlers import (
    handle_hostname_request,
    handle_ip_request,
    handle_user_activity,
)
from server_name_picker.kafka_consumer.producer import ResponseProducer
from server_name_picker.proxmox_service.engine import HostnameEngine
from server_name_picker.upstream.ipam import IpamClient
from server_name_picker.upstream.proxmox import ProxmoxClient

logger = logging.getLogger(__name__)


def build_consumers(
    hostname_engine: HostnameEngine,
    ip_engine: IpEngine,
    producer: ResponseProducer,
    bootstrap: str = config.KAFKA_BOOTSTRAP,
    make_consumer: Callable[[str], Any] | None = None,
) -> list[TopicConsumer]:
    """
    One consumer group per topic so no stream waits on another.

    make_consumer(topic) may supply the underlying Kafka consumer; by default
    each TopicConsumer builds its own.
    """

    def kafka_for(topic):
        return make_consumer(topic) if make_consumer else None

    return [
        TopicConsumer(
            config.KAFKA_TOPIC_HOSTNAME_REQUEST,
            partial(handle_hostname_request, engine=hostname_engine),
            producer=producer,
            response_topic=config.KAFKA_TOPIC_HOSTNAME_RESPONSE,
            bootstrap_servers=bootstrap,
            consumer=kafka_for(config.KAFKA_TOPIC_HOSTNAME_REQUEST),
        ),
        TopicConsumer(
            config.KAFKA_TOPIC_IP_REQUEST,
            partial(handle_ip_request, engine=ip_engine),
            producer=producer,
            response_topic=config.KAFKA_TOPIC_IP_RESPONSE,
            bootstrap_servers=bootstrap,
            consumer=kafka_for(config.KAFKA_TOPIC_IP_REQUEST),
        ),
        TopicConsumer(
            config.KAFKA_TOPIC_USER_ACTIVITY,
            handle_user_activity,
            bootstrap_servers=bootstrap,
            consumer=kafka_for(config.KAFKA_TOPIC_USER_ACTIVITY),
        ),
    ]


def stop_consumers(consumers: list[TopicConsumer]) -> None:
    for consumer in consumers:
        consumer.stop()


def run_bridge(consumers: list[TopicConsumer], producer: ResponseProducer) -> None:
    """
    Run every consumer in its own thread until all of them have stopped.

    After stop_consumers() each lane finishes the message in hand and closes
    its Kafka consumer; the shared producer is flushed and closed last.
    """
    threads = [
        threading.Thread(target=consumer.run, name=f"consumer-{consumer.topic}")
        for consumer in consumers
    ]
    for thread in threads:
        thread.start()
    logger.info("All Kafka consumers are running")

    try:
        # join with a timeout so the main thread keeps receiving signals
        while any(thread.is_alive() for thread in threads):
            for thread in threads:
                thread.join(timeout=1.0)
    finally:
        producer.close()
        logger.info("Disconnected from Kafka")


def main():
    """Start the Kafka bridge."""
    configure_logging()
    bootstrap = config.KAFKA_BOOTSTRAP
    logger.info(f"Starting Kafka bridge with KAFKA_BOOTSTRAP={bootstrap} GROUP_ID={config.KAFKA_GROUP_ID}")

    # Each engine owns its cache.
    proxmox_cache = TTLCache()
    ipam_cache = TTLCache()
    hostname_engine = HostnameEngine(ProxmoxClient(proxmox_cache), proxmox_cache)
    ip_engine = IpEngine(IpamClient(ipam_cache), ipam_cache)

    producer = ResponseProducer(bootstrap)
    consumers = build_consumers(hostname_engine, ip_engine, producer, bootstrap)

    def shutdown(signum, frame):
        logger.info(f"Signal {signum} received, shutting down gracefully")
        stop_consumers(consumers)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    for cache in (proxmox_cache, ipam_cache):
        cache.start_sweeper()
    try:
        run_bridge(consumers, producer)
    finally:
        for cache in (proxmox_cache, ipam_cache):
            cache.stop_sweeper()


if __name__ == "__main__":
    main()
