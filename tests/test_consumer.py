import json
from functools import partial

import pytest

from conftest import FakeError, FakeKafkaConsumer, FakeMessage, FakeProducer, FakeProxmox
from server_name_picker.kafka_consumer.client import CorrelatingClient
from server_name_picker.kafka_consumer.consumer import TopicConsumer
from server_name_picker.kafka_consumer.handlers import handle_hostname_request, handle_user_activity
from server_name_picker.kafka_consumer.models import HostnameResponse
from server_name_picker.kafka_consumer.producer import ResponseProducer
from server_name_picker.proxmox_service.engine import HostnameEngine


def bridge(cache, messages, names=("web1", "web2"), producer=None):
    engine = HostnameEngine(FakeProxmox(names), cache)
    kafka = FakeKafkaConsumer(messages)
    producer = producer or FakeProducer()
    consumer = TopicConsumer(
        "hostname-requests",
        partial(handle_hostname_request, engine=engine),
        producer=producer,
        response_topic="hostname-responses",
        consumer=kafka,
    )
    # stop once the scripted messages are drained
    kafka.on_empty = consumer.stop
    return consumer, kafka, producer


def test_response_carries_request_id_and_inbound_key(cache):
    msg = FakeMessage({"requestId": "r1", "hostname": "web2", "prefix": "web"}, key=b"user-7")
    consumer, kafka, producer = bridge(cache, [msg])

    consumer.run()

    assert kafka.subscribed == ["hostname-requests"]
    [(topic, key, payload)] = producer.published
    assert topic == "hostname-responses"
    assert key == b"user-7"
    assert payload["requestId"] == "r1"
    assert payload["suggestions"] == ["web3", "web4", "web5"]
    assert kafka.committed == [msg]
    assert kafka.closed


def test_one_response_per_request(cache):
    msgs = [FakeMessage({"requestId": f"r{i}", "hostname": f"host{i}"}, offset=i) for i in range(5)]
    consumer, kafka, producer = bridge(cache, msgs)

    consumer.run()

    assert [p["requestId"] for _, _, p in producer.published] == ["r0", "r1", "r2", "r3", "r4"]
    assert kafka.committed == msgs


def test_missing_hostname_publishes_nothing_but_commits(cache):
    msg = FakeMessage({"requestId": "r1", "prefix": "web"})
    consumer, kafka, producer = bridge(cache, [msg])

    consumer.run()

    assert producer.published == []
    assert kafka.committed == [msg]


def test_bad_json_is_skipped(cache):
    bad = FakeMessage("not json {{{")
    not_object = FakeMessage("[1, 2]")
    consumer, kafka, producer = bridge(cache, [bad, not_object])

    consumer.run()

    assert producer.published == []
    assert kafka.committed == [bad, not_object]


def test_failed_publish_rewinds_instead_of_committing(cache):
    msg = FakeMessage({"requestId": "r1", "hostname": "web1"}, topic="hostname-requests", partition=2, offset=41)
    consumer, kafka, producer = bridge(cache, [msg], producer=FakeProducer(ok=False))

    consumer.run()

    assert kafka.committed == []
    [tp] = kafka.seeks
    assert (tp.topic, tp.partition, tp.offset) == ("hostname-requests", 2, 41)


def test_redelivered_request_gets_same_answer(cache):
    payload = {"requestId": "r1", "hostname": "web1", "prefix": "web"}
    msgs = [FakeMessage(payload, offset=0), FakeMessage(payload, offset=0)]
    consumer, kafka, producer = bridge(cache, msgs)

    consumer.run()

    first, second = (p for _, _, p in producer.published)
    first.pop("timestamp")
    second.pop("timestamp")
    assert first == second


def test_broker_errors_are_skipped(cache):
    err = FakeMessage(b"", error=FakeError(-1))
    ok = FakeMessage({"requestId": "r1", "hostname": "new1"})
    consumer, kafka, producer = bridge(cache, [err, ok])

    consumer.run()

    assert len(producer.published) == 1
    assert kafka.committed == [ok]


def test_activity_stream_has_no_response_topic():
    msg = FakeMessage({"action": "logout", "userId": "u1"}, topic="user-activity")
    kafka = FakeKafkaConsumer([msg])
    consumer = TopicConsumer("user-activity", handle_user_activity, consumer=kafka)
    kafka.on_empty = consumer.stop

    consumer.run()

    assert kafka.committed == [msg]


def test_group_id_is_per_topic():
    consumer = TopicConsumer("ip-requests", handle_user_activity, consumer=FakeKafkaConsumer())
    assert consumer.group_id.endswith("-ip-requests")


def test_response_topic_needs_a_producer():
    with pytest.raises(ValueError):
        TopicConsumer("ip-requests", handle_user_activity, response_topic="ip-responses", consumer=FakeKafkaConsumer())


class RecordingKafkaProducer:
    def __init__(self, error=None, pending=0):
        self.error = error
        self.pending = pending
        self.produced = []

    def produce(self, topic, key, value, callback):
        self.produced.append((topic, key, value))
        callback(self.error, self)

    def flush(self, timeout=None):
        return self.pending

    def topic(self):
        return "hostname-responses"

    def partition(self):
        return 0


def test_response_producer_serialises_json():
    kafka = RecordingKafkaProducer()
    producer = ResponseProducer(producer=kafka)
    response = HostnameResponse(requestId="r1", hostname="web1", available=True, timestamp="t")

    assert producer.publish("hostname-responses", "r1", response.model_dump()) is True

    [(topic, key, value)] = kafka.produced
    assert key == b"r1"
    assert json.loads(value)["requestId"] == "r1"


def test_response_producer_reports_delivery_failure():
    assert ResponseProducer(producer=RecordingKafkaProducer(error="broker down")).publish("t", None, {}) is False
    assert ResponseProducer(producer=RecordingKafkaProducer(pending=1)).publish("t", None, {}) is False


def test_correlating_client_waits_for_its_own_request_id():
    responses = [
        FakeMessage({"requestId": "someone-else", "available": True}, topic="hostname-responses"),
        FakeMessage("garbage", topic="hostname-responses"),
        FakeMessage({"requestId": "r1", "hostname": "web1", "available": False}, topic="hostname-responses"),
    ]
    producer = FakeProducer()
    kafka = FakeKafkaConsumer()
    client = CorrelatingClient("hostname-requests", "hostname-responses", producer=producer, consumer=kafka)
    client.start(timeout=1)
    kafka.queue.extend(responses)

    response = client.request({"requestId": "r1", "hostname": "web1"}, timeout=1)

    assert response["available"] is False
    [(topic, key, payload)] = producer.published
    assert (topic, key) == ("hostname-requests", "r1")
    assert payload == {"requestId": "r1", "hostname": "web1"}


def test_correlating_client_treats_silence_as_failure():
    producer = FakeProducer()
    client = CorrelatingClient("ip-requests", "ip-responses", producer=producer, consumer=FakeKafkaConsumer())
    client.start(timeout=1)

    assert client.check_ip("10", timeout=0.05) is None
    [(_, key, payload)] = producer.published
    assert payload["requestId"] == key
    assert payload["requestId"].startswith("req_")


def test_handler_crash_rewinds_instead_of_committing():
    msg = FakeMessage({"action": "login"}, topic="user-activity", partition=1, offset=7)
    kafka = FakeKafkaConsumer([msg])

    def broken(payload):
        raise RuntimeError("boom")

    consumer = TopicConsumer("user-activity", broken, consumer=kafka)
    kafka.on_empty = consumer.stop

    consumer.run()

    assert kafka.committed == []
    [tp] = kafka.seeks
    assert (tp.topic, tp.partition, tp.offset) == ("user-activity", 1, 7)
    assert kafka.closed
