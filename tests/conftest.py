from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest


class FakePahoClient:
    """Stands in for paho's Client: records calls, never touches the network."""

    def __init__(self, rc=mqtt.MQTT_ERR_SUCCESS):
        self.rc = rc
        # Return codes handed out before falling back to `rc`.
        self.results = []
        self.max_queued = None
        self.published = []
        self.calls = []
        self.reconnect_delay = None
        self.on_connect = None
        self.on_disconnect = None
        self.on_connect_fail = None

    def max_queued_messages_set(self, n):
        self.max_queued = n

    def reconnect_delay_set(self, min_delay, max_delay):
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host, port, keepalive=60):
        self.calls.append(("connect_async", host, port))

    def loop_start(self):
        self.calls.append(("loop_start",))

    def loop_stop(self):
        self.calls.append(("loop_stop",))

    def disconnect(self):
        self.calls.append(("disconnect",))

    def publish(self, topic, payload=None, qos=0):
        rc = self.results.pop(0) if self.results else self.rc
        if rc != mqtt.MQTT_ERR_QUEUE_SIZE:
            self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=rc)

    def accept_session(self):
        """Fire on_connect the way paho does once the broker accepts the session."""
        self.on_connect(self, None, None, SimpleNamespace(is_failure=False), None)


@pytest.fixture
def paho_client():
    return FakePahoClient()
