"""MQTT subscription feeding inbound payloads to the ingestion workers."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from settings import ConfigurationError, get_settings

logger = logging.getLogger(__name__)

PayloadHandler = Callable[[str, bytes], object]

_PLAIN_SCHEMES = {"tcp": 1883, "mqtt": 1883}
_TLS_SCHEMES = {"ssl": 8883, "mqtts": 8883}


def parse_broker_url(url: Optional[str]) -> Tuple[str, int, bool]:
    """Split ``scheme://host[:port]`` into host, port, and whether TLS is used."""
    if not url:
        raise ConfigurationError("MQTT broker URL is not configured.")

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme in _PLAIN_SCHEMES:
        default_port, use_tls = _PLAIN_SCHEMES[scheme], False
    elif scheme in _TLS_SCHEMES:
        default_port, use_tls = _TLS_SCHEMES[scheme], True
    else:
        raise ConfigurationError(f"Unsupported MQTT broker URL scheme in {url!r}.")

    if not parts.hostname:
        raise ConfigurationError(f"MQTT broker URL {url!r} has no host.")
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise ConfigurationError(f"MQTT broker URL {url!r} has an invalid port.") from exc
    return parts.hostname, port, use_tls


class MqttSubscriber:
    """Subscribes to the configured topics and forwards every message payload."""

    def __init__(
        self,
        broker_url: str,
        client_id: str,
        topics: Sequence[str],
        on_payload: PayloadHandler,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.host, self.port, self.use_tls = parse_broker_url(broker_url)
        self.broker_url = broker_url
        self.topics = tuple(topics)
        self.on_payload = on_payload
        self.connected = False

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
            clean_session=True,
        )
        if username:
            self._client.username_pw_set(username, password)
        if self.use_tls:
            self._client.tls_set()
        self._client.reconnect_delay_set(min_delay=1, max_delay=60)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    def start(self) -> None:
        logger.info("Connecting to MQTT broker %s:%d", self.host, self.port)
        self._client.connect_async(self.host, self.port, keepalive=60)
        self._client.loop_start()

    def stop(self) -> None:
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()
        logger.info("MQTT subscriber stopped")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            self.connected = False
            logger.error("MQTT connection refused: %s", reason_code)
            return

        self.connected = True
        # Subscribing here restores subscriptions after an automatic reconnect.
        for topic in self.topics:
            client.subscribe(topic)
            logger.info("Subscribed to MQTT topic", extra={"topic": topic})
        logger.info("Connected to MQTT broker %s", self.broker_url)

    def _on_disconnect(
        self, client, userdata, disconnect_flags, reason_code, properties=None
    ) -> None:
        self.connected = False
        logger.warning("MQTT connection lost: %s", reason_code)

    def _on_message(self, client, userdata, message) -> None:
        try:
            self.on_payload(message.topic, message.payload)
        except Exception:
            logger.exception("Failed to dispatch MQTT message", extra={"topic": message.topic})


def build_default_subscriber(on_payload: PayloadHandler) -> MqttSubscriber:
    """Wire a subscriber from settings; a missing broker URL is fatal."""
    settings = get_settings()
    return MqttSubscriber(
        broker_url=settings.broker_url or "",
        client_id=settings.client_id,
        topics=settings.topics,
        on_payload=on_payload,
        username=settings.username,
        password=settings.password,
    )
