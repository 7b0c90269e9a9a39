# backend/petfeeder/mqtt/client.py

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

import paho.mqtt.client as mqtt

from petfeeder.core.config import Settings, settings as default_settings
from petfeeder.core.exceptions import ConnectionUnavailable, PublishFailed
from petfeeder.schemas.command import Command, ConnectionSnapshot, ConnectionState
from petfeeder.services.command_encoder import encode

logger = logging.getLogger(__name__)


def _is_failure(reason_code: Any) -> bool:
    # paho v2 hands over a ReasonCode; plain ints show up with older brokers/fakes
    failure = getattr(reason_code, "is_failure", None)
    if failure is not None:
        return bool(failure)
    return reason_code != 0


class DeviceChannel:
    """MQTT link to the feeder servo.

    - start() connects in the background; paho's loop thread keeps
      reconnecting at a fixed interval for as long as the channel runs.
    - publish() never raises: anything short of a broker PUBACK is False.
    - Messages on the response topic are only logged. Correlating them with
      commands (logId) is not implemented.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[mqtt.Client] = None,
    ) -> None:
        self._cfg = config or default_settings
        self.host = self._cfg.MQTT_BROKER_HOST
        self.port = self._cfg.MQTT_BROKER_PORT
        self.command_topic = self._cfg.MQTT_TOPIC_COMMAND
        self.response_topic = self._cfg.MQTT_TOPIC_RESPONSE

        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.Lock()
        self._running = False

        if client is None:
            client = mqtt.Client(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=self._cfg.MQTT_CLIENT_ID,
                clean_session=True,
            )
        self.client = client

        self.client.on_pre_connect = self._on_pre_connect
        self.client.on_connect = self._on_connect
        self.client.on_connect_fail = self._on_connect_fail
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    # ========== lifecycle ==========

    def start(self) -> None:
        """Connect and start the network loop.

        Raises ConnectionUnavailable only when the transport itself cannot be
        set up; an unreachable broker is retried in the background.
        """
        with self._lock:
            if self._running:
                return
            self._running = True
            self._state = ConnectionState.CONNECTING

        interval = self._cfg.MQTT_RECONNECT_INTERVAL
        logger.info(
            "[MQTT] Connecting to %s:%s (id=%s, retry every %ss)",
            self.host, self.port, self._cfg.MQTT_CLIENT_ID, interval,
        )
        try:
            self.client.connect_timeout = self._cfg.MQTT_CONNECT_TIMEOUT
            self.client.reconnect_delay_set(min_delay=interval, max_delay=interval)
            self.client.connect_async(self.host, self.port, keepalive=self._cfg.MQTT_KEEPALIVE)
            rc = self.client.loop_start()
        except (ValueError, OSError) as e:
            self._mark_stopped(ConnectionState.DISCONNECTED)
            raise ConnectionUnavailable(f"cannot initialise MQTT transport: {e}") from e

        if rc not in (None, mqtt.MQTT_ERR_SUCCESS):
            self._mark_stopped(ConnectionState.DISCONNECTED)
            raise ConnectionUnavailable(f"MQTT loop did not start: {mqtt.error_string(rc)}")
        logger.info("[MQTT] loop thread started")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
        self._mark_stopped(ConnectionState.OFFLINE)

        try:
            self.client.disconnect()
        except Exception as e:
            logger.warning("[MQTT] disconnect failed: %r", e)
        self.client.loop_stop()
        logger.info("[MQTT] stopped")

    def _mark_stopped(self, state: ConnectionState) -> None:
        with self._lock:
            self._running = False
            self._state = state

    def _set_state(self, state: ConnectionState) -> None:
        with self._lock:
            # after stop() the channel stays offline whatever paho reports
            if not self._running:
                return
            self._state = state

    # ========== status ==========

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def status(self) -> ConnectionSnapshot:
        state = self.state
        return ConnectionSnapshot(
            connected=state is ConnectionState.CONNECTED,
            state=state,
            broker_address=f"{self.host}:{self.port}",
            command_topic=self.command_topic,
            response_topic=self.response_topic,
        )

    # ========== callbacks (paho loop thread) ==========

    def _on_pre_connect(self, client, userdata):
        logger.debug("[MQTT] connecting...")
        self._set_state(ConnectionState.CONNECTING)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if _is_failure(reason_code):
            logger.error("[MQTT] Connection refused rc=%s", reason_code)
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._set_state(ConnectionState.CONNECTED)
        logger.info("[MQTT] Connected rc=%s", reason_code)
        client.subscribe(self.response_topic, qos=1)
        logger.info("[MQTT] Subscribed: %s", self.response_topic)

    def _on_connect_fail(self, client, userdata):
        logger.warning(
            "[MQTT] Connection to %s:%s failed, retrying in %ss",
            self.host, self.port, self._cfg.MQTT_RECONNECT_INTERVAL,
        )
        self._set_state(ConnectionState.DISCONNECTED)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code=None, properties=None):
        logger.warning("[MQTT] Connection closed rc=%s", reason_code)
        self._set_state(ConnectionState.DISCONNECTED)

    def _on_message(self, client, userdata, msg):
        if msg.topic != self.response_topic:
            return
        try:
            payload_str = msg.payload.decode("utf-8")
            data = json.loads(payload_str) if payload_str else None
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning("[MQTT] bad response payload: %r (%r)", msg.payload, e)
            return
        logger.info("[MQTT] device response: %s", data)

    # ========== publish ==========

    def publish(self, command: Command) -> bool:
        if not self.is_connected:
            logger.warning(
                "[MQTT] not connected, %s command not sent (device offline?)",
                command.action.value,
            )
            return False

        timeout = self._cfg.MQTT_PUBLISH_TIMEOUT
        try:
            payload = encode(command)
            info = self.client.publish(self.command_topic, payload, qos=1, retain=False)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                raise PublishFailed(f"publish rc={info.rc} ({mqtt.error_string(info.rc)})")
            info.wait_for_publish(timeout=timeout)
            if not info.is_published():
                raise PublishFailed(f"no PUBACK within {timeout}s (mid={info.mid})")
        except PublishFailed as e:
            logger.error("[MQTT] publish -> %s failed: %s", self.command_topic, e)
            return False
        except Exception as e:
            logger.error("[MQTT] publish -> %s error: %r", self.command_topic, e)
            return False

        logger.info("[MQTT] publish -> %s: %s", self.command_topic, payload.decode("utf-8"))
        return True
