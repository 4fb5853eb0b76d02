"""
Redis-backed preference store

Values live JSON-encoded in a single hash. Every write is published on
``<channel_prefix><key>`` so other processes sharing the hash see the change;
a pub/sub listener thread forwards those messages to local watchers.
"""
import json
import logging
import uuid
from typing import Any

import redis

from .config import RedisConfig
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)


class RedisPreferenceStore(PreferenceStore):
    """PreferenceStore shared between processes through Redis"""

    def __init__(
        self,
        client: redis.Redis,
        settings_key: str = "enhancement:preferences",
        channel_prefix: str = "enhancement:preferences:changed:"
    ):
        super().__init__()
        self.client = client
        self.settings_key = settings_key
        self.channel_prefix = channel_prefix
        self.origin = uuid.uuid4().hex
        self._pubsub = None
        self._listener = None

    @classmethod
    def from_config(cls, config: RedisConfig) -> "RedisPreferenceStore":
        client = redis.Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password,
            decode_responses=True
        )
        client.ping()
        logger.info(f"Redis preference store connected: {config.host}:{config.port}/{config.db}")
        return cls(client, config.settings_key, config.channel_prefix)

    def read(self, key: str) -> Any:
        raw = self.client.hget(self.settings_key, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Stored preference {key!r} is not JSON: {raw!r}")
            return None

    def _write(self, key: str, value: Any) -> None:
        self.client.hset(self.settings_key, key, json.dumps(value))
        self._publish(key, value)

    def _remove(self, key: str) -> None:
        self.client.hdel(self.settings_key, key)
        self._publish(key, None)

    def _publish(self, key: str, value: Any) -> None:
        message = json.dumps({"origin": self.origin, "value": value})
        self.client.publish(f"{self.channel_prefix}{key}", message)

    def handle_message(self, message: dict) -> None:
        """Pub/sub callback: forward changes made by other processes"""
        channel = message.get("channel") or ""
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        if not channel.startswith(self.channel_prefix):
            return

        key = channel[len(self.channel_prefix):]
        try:
            payload = json.loads(message.get("data") or "")
        except (TypeError, ValueError):
            logger.warning(f"Malformed preference change on {channel}: {message.get('data')!r}")
            return

        if not isinstance(payload, dict) or payload.get("origin") == self.origin:
            # Local writes were already delivered
            return

        logger.debug(f"Preference {key!r} changed remotely")
        self._notify(key, payload.get("value"))

    def start_listening(self, sleep_time: float = 0.1) -> None:
        """Start the background pub/sub listener thread"""
        if self._listener is not None:
            return
        self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.psubscribe(**{f"{self.channel_prefix}*": self.handle_message})
        self._listener = self._pubsub.run_in_thread(sleep_time=sleep_time, daemon=True)
        logger.info(f"Listening for preference changes on {self.channel_prefix}*")

    def stop_listening(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None

    def close(self) -> None:
        self.stop_listening()
        self.client.close()

    @property
    def listening(self) -> bool:
        return self._listener is not None
