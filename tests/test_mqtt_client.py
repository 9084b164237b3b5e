import threading
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from mqtt_simulator.errors import ChannelClosed, SubmitError
from mqtt_simulator.mqtt_client import ConnectionEvent, MqttSupervisor, validate_topic


def _supervisor(client, **kwargs):
    return MqttSupervisor(client_id="sim", host="broker", port=1883, client=client, **kwargs)


def _run_in_thread(sup):
    stop = threading.Event()
    t = threading.Thread(target=sup.run, args=(stop,))
    t.start()
    return stop, t


def test_reconnect_delay_is_fixed(paho_client):
    _supervisor(paho_client)
    assert paho_client.reconnect_delay == (3, 3)


@pytest.mark.parametrize("topic", ["", "a/+/b", "a/#", "a\x00b", "x" * 65536])
def test_invalid_topics_are_rejected(topic):
    with pytest.raises(SubmitError):
        validate_topic(topic)


def test_submit_rejects_bad_topic(paho_client):
    with pytest.raises(SubmitError):
        _supervisor(paho_client).submit("a/#", b"")


def test_submit_blocks_when_channel_is_full(paho_client):
    sup = _supervisor(paho_client, capacity=1)
    sup.poll_timeout = 0.01
    sup.submit("t", b"1")

    done = threading.Event()

    def second():
        sup.submit("t", b"2")
        done.set()

    t = threading.Thread(target=second, daemon=True)
    t.start()
    assert not done.wait(0.1)

    # Drain by running the supervisor on a live session: the blocked submit completes.
    paho_client.accept_session()
    stop, runner = _run_in_thread(sup)
    assert done.wait(2.0)
    stop.set()
    runner.join(timeout=2.0)


def test_run_forwards_messages_with_qos(paho_client):
    client = paho_client
    sup = _supervisor(client)
    sup.poll_timeout = 0.01
    client.accept_session()
    stop, t = _run_in_thread(sup)

    sup.submit("plant/rpm", b"\x01\x02", qos=1)
    sup.submit("plant/on", b"\x01", qos=1)
    for _ in range(200):
        if len(client.published) == 2:
            break
        threading.Event().wait(0.01)
    stop.set()
    t.join(timeout=2.0)

    assert client.published == [("plant/rpm", b"\x01\x02", 1), ("plant/on", b"\x01", 1)]
    assert client.calls[0] == ("connect_async", "broker", 1883)
    assert ("loop_stop",) in client.calls


def test_submit_after_stop_raises_channel_closed(paho_client):
    sup = _supervisor(paho_client)
    sup.poll_timeout = 0.01
    stop, t = _run_in_thread(sup)
    stop.set()
    t.join(timeout=2.0)

    assert sup.closed
    with pytest.raises(ChannelClosed):
        sup.submit("t", b"")


def test_callbacks_feed_the_event_stream(paho_client):
    client = paho_client
    sup = _supervisor(client)
    ok = SimpleNamespace(is_failure=False)
    bad = SimpleNamespace(is_failure=True)

    client.on_connect(client, None, None, ok, None)
    client.on_connect(client, None, None, bad, None)
    client.on_disconnect(client, None, None, bad, None)
    client.on_connect_fail(client, None)

    events = sup.events()
    kinds = [events.get_nowait().kind for _ in range(4)]
    assert kinds == ["connected", "refused", "disconnected", "connect_failed"]


def test_error_event_waits_fixed_delay(paho_client, caplog):
    client = paho_client
    sup = _supervisor(client, reconnect_delay=1)
    sup.poll_timeout = 0.01
    client.on_connect_fail(client, None)

    stop = threading.Event()
    waits = []
    real_wait = stop.wait

    def recording_wait(timeout=None):
        waits.append(timeout)
        stop.set()
        return real_wait(0)

    stop.wait = recording_wait
    with caplog.at_level("ERROR"):
        sup.run(stop)

    assert waits[0] == 1
    assert "retrying in 1s" in caplog.text


def test_connection_event_error_classification():
    assert not ConnectionEvent("connected").is_error
    assert ConnectionEvent("disconnected").is_error


def test_paho_store_is_capped_at_capacity(paho_client):
    _supervisor(paho_client, capacity=4)
    assert paho_client.max_queued == 4


def _wait_until(predicate, timeout=2.0):
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return True
        threading.Event().wait(0.01)
    return predicate()


def test_submit_blocks_while_broker_is_unreachable(paho_client):
    sup = _supervisor(paho_client, capacity=3, reconnect_delay=0)
    sup.poll_timeout = 0.01
    stop, runner = _run_in_thread(sup)
    paho_client.on_connect_fail(paho_client, None)

    submitted = []

    def producer():
        for i in range(20):
            sup.submit("plant/rpm", bytes([i]))
            submitted.append(i)

    t = threading.Thread(target=producer, daemon=True)
    t.start()
    threading.Event().wait(0.3)

    # Nothing reaches paho and the producer is held at the channel capacity.
    assert paho_client.published == []
    assert len(submitted) == 3
    assert t.is_alive()

    # Once the session is up everything drains, in order.
    paho_client.accept_session()
    assert _wait_until(lambda: len(paho_client.published) == 20, timeout=20.0)
    t.join(timeout=2.0)
    stop.set()
    runner.join(timeout=5.0)

    assert [p[1] for p in paho_client.published] == [bytes([i]) for i in range(20)]


def test_disconnect_pauses_forwarding(paho_client):
    sup = _supervisor(paho_client, reconnect_delay=0)
    sup.poll_timeout = 0.01
    paho_client.accept_session()
    assert sup.connected

    paho_client.on_disconnect(paho_client, None, None, SimpleNamespace(is_failure=True), None)
    assert not sup.connected

    stop, runner = _run_in_thread(sup)
    sup.submit("t", b"1")
    threading.Event().wait(0.1)
    assert paho_client.published == []
    stop.set()
    runner.join(timeout=2.0)


def test_full_paho_store_resends_the_same_message(paho_client):
    paho_client.results = [mqtt.MQTT_ERR_QUEUE_SIZE, mqtt.MQTT_ERR_QUEUE_SIZE]
    sup = _supervisor(paho_client)
    sup.poll_timeout = 0.01
    paho_client.accept_session()
    stop, runner = _run_in_thread(sup)

    sup.submit("a", b"1")
    sup.submit("b", b"2")
    assert _wait_until(lambda: len(paho_client.published) == 2)
    stop.set()
    runner.join(timeout=2.0)

    assert [p[0] for p in paho_client.published] == ["a", "b"]
