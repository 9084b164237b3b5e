"""Connection supervisor built on top of paho-mqtt.

Why this exists:
- paho-mqtt owns the broker session: connect, reconnect, QoS 1 acknowledgement
  and resending of unacknowledged messages.
- The rest of the simulator only needs two things from it: a way to submit
  outbound messages, and a stream of connection events to watch.

Design:
- `submit()` puts messages on a *bounded* queue. When the queue is full the
  caller blocks, which slows the publisher down while the broker is away.
- paho callbacks run on paho's network thread; they track whether a session
  is up and push `ConnectionEvent`s onto a queue.
- `run()` is the supervising task: it drains events (logging errors and
  waiting a fixed 3 seconds) and forwards queued messages to paho, but only
  while connected. paho's own message store is capped at the same capacity,
  so neither side grows without bound while the broker is away.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any

import paho.mqtt.client as mqtt

from .errors import ChannelClosed, SubmitError

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 3
OUTBOUND_CAPACITY = 10
MAX_TOPIC_BYTES = 65535


@dataclass(frozen=True)
class OutboundMessage:
    topic: str
    payload: bytes
    qos: int = 1


@dataclass(frozen=True)
class ConnectionEvent:
    kind: str  # "connected" | "refused" | "disconnected" | "connect_failed"
    detail: str = ""

    @property
    def is_error(self) -> bool:
        return self.kind != "connected"


def validate_topic(topic: str) -> None:
    """Reject topics a broker would refuse for PUBLISH."""
    if not topic:
        raise SubmitError("topic must not be empty")
    if "+" in topic or "#" in topic:
        raise SubmitError(f"wildcards are not allowed in a publish topic: {topic!r}")
    if "\x00" in topic:
        raise SubmitError(f"topic contains a NUL character: {topic!r}")
    if len(topic.encode("utf-8")) > MAX_TOPIC_BYTES:
        raise SubmitError(f"topic longer than {MAX_TOPIC_BYTES} bytes")


class MqttSupervisor:
    """Owns the paho client and the outbound message channel."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
        capacity: int = OUTBOUND_CAPACITY,
        reconnect_delay: int = RECONNECT_DELAY,
        client: Any = None,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.reconnect_delay = reconnect_delay

        # Tests pass a fake here.
        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self._client = client
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_connect_fail = self._on_connect_fail
        # paho retries on its own; keep its delay fixed instead of exponential.
        self._client.reconnect_delay_set(min_delay=reconnect_delay, max_delay=reconnect_delay)
        # Bound paho's own store of unacknowledged messages too; beyond it
        # publish() returns MQTT_ERR_QUEUE_SIZE and the message is retried.
        self._client.max_queued_messages_set(capacity)

        self._outbound: "queue.Queue[OutboundMessage]" = queue.Queue(maxsize=capacity)
        self._events: "queue.Queue[ConnectionEvent]" = queue.Queue()
        self._closed = threading.Event()
        # Set from the paho thread while a session is up; nothing is forwarded
        # without it, so the bounded queue fills and submit() blocks.
        self._connected = threading.Event()
        self._held: OutboundMessage | None = None

        # How long run() blocks on an empty outbound queue before re-checking events.
        self.poll_timeout = 0.1

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def submit(self, topic: str, payload: bytes, qos: int = 1) -> None:
        """Queue a message for publishing; blocks while the channel is full.

        Raises:
            SubmitError: the topic or QoS is invalid.
            ChannelClosed: the supervisor task is no longer running.
        """
        validate_topic(topic)
        if qos not in (0, 1, 2):
            raise SubmitError(f"invalid qos {qos}")
        msg = OutboundMessage(topic=topic, payload=bytes(payload), qos=qos)
        while True:
            if self._closed.is_set():
                raise ChannelClosed("MQTT event loop is no longer running")
            try:
                self._outbound.put(msg, timeout=self.poll_timeout)
                return
            except queue.Full:
                continue

    def events(self) -> "queue.Queue[ConnectionEvent]":
        """The raw event stream. `run()` is normally the only consumer."""
        return self._events

    def run(self, stop_event: threading.Event) -> None:
        """Supervising task: start the network loop, drain events, forward messages."""
        logger.info("Connecting to MQTT broker at %s:%s as %s", self.host, self.port, self.client_id)
        self._client.connect_async(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        try:
            while not stop_event.is_set():
                self._drain_events(stop_event)
                if not self._connected.is_set():
                    stop_event.wait(self.poll_timeout)
                    continue
                if self._held is None:
                    try:
                        self._held = self._outbound.get(timeout=self.poll_timeout)
                    except queue.Empty:
                        continue
                if self._forward(self._held):
                    self._held = None
                else:
                    stop_event.wait(self.poll_timeout)
        finally:
            self._closed.set()
            self._client.loop_stop()
            self._client.disconnect()

    # -------------------- internals --------------------

    def _drain_events(self, stop_event: threading.Event) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return
            if event.is_error:
                logger.error(
                    "Lost connection to MQTT broker %s:%s (%s: %s), retrying in %ss",
                    self.host,
                    self.port,
                    event.kind,
                    event.detail,
                    self.reconnect_delay,
                )
                stop_event.wait(self.reconnect_delay)
            else:
                logger.debug("MQTT event: %s %s", event.kind, event.detail)

    def _forward(self, msg: OutboundMessage) -> bool:
        """Hand one message to paho. Returns False if it must be sent again."""
        info = self._client.publish(msg.topic, payload=msg.payload, qos=msg.qos)
        if info.rc == mqtt.MQTT_ERR_QUEUE_SIZE:
            return False
        # NO_CONN still queues QoS>0 messages inside paho; they go out on reconnect.
        if info.rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
            logger.error("Publish to %s failed: %s", msg.topic, mqtt.error_string(info.rc))
        return True

    # -------------------- paho callbacks (network thread) --------------------

    def _on_connect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            self._connected.clear()
            self._events.put(ConnectionEvent("refused", str(reason_code)))
        else:
            self._connected.set()
            self._events.put(ConnectionEvent("connected", f"{self.host}:{self.port}"))

    def _on_disconnect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        self._connected.clear()
        self._events.put(ConnectionEvent("disconnected", str(reason_code)))

    def _on_connect_fail(self, client: Any, userdata: Any) -> None:
        self._connected.clear()
        self._events.put(ConnectionEvent("connect_failed", f"{self.host}:{self.port} unreachable"))
