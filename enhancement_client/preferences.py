"""
Key-value preference storage with per-key change notifications

A PreferenceStore hands out typed Preference objects. Each preference can be
read, written and observed: ``Preference.changes()`` is an async iterator that
yields the current value and then every value written afterwards, including
writes made from other threads (they are delivered on the subscriber's loop).
"""
import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, TypeVar

from .config import Config, get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PreferenceError(ValueError):
    """Raised when a value cannot be stored under a preference"""


class _Watcher:
    """Delivery point for change notifications of one subscriber"""

    __slots__ = ("loop", "queue")

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()


class Preference(Generic[T]):
    """A single typed key in a PreferenceStore"""

    def __init__(self, store: "PreferenceStore", key: str, default: T):
        self._store = store
        self.key = key
        self.default = default

    def coerce(self, raw: Any) -> T:
        """Convert a stored value to this preference's type"""
        return raw

    def validate(self, value: T) -> T:
        """Check a value before it is written, raising PreferenceError"""
        return value

    def _from_raw(self, raw: Any) -> T:
        if raw is None:
            return self.default
        try:
            return self.coerce(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid stored value for {self.key!r}: {raw!r} ({e})")
            return self.default

    def get(self) -> T:
        return self._from_raw(self._store.read(self.key))

    def set(self, value: T) -> None:
        self._store.write(self.key, self.validate(value))

    def delete(self) -> None:
        self._store.remove(self.key)

    def is_set(self) -> bool:
        return self._store.read(self.key) is not None

    async def changes(self) -> AsyncIterator[T]:
        """Yield the current value, then every subsequent value for this key"""
        watcher = self._store.watch(self.key)
        try:
            # Backing stores may do blocking I/O (Redis), keep it off the loop
            yield await asyncio.to_thread(self.get)
            while True:
                raw = await watcher.queue.get()
                yield self._from_raw(raw)
        finally:
            self._store.unwatch(self.key, watcher)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r}, default={self.default!r})"


class BooleanPreference(Preference[bool]):

    def coerce(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int):
            return raw != 0
        if isinstance(raw, str) and raw.lower() in ("true", "false", "1", "0"):
            return raw.lower() in ("true", "1")
        raise ValueError(f"not a boolean: {raw!r}")

    def validate(self, value: bool) -> bool:
        if not isinstance(value, bool):
            raise PreferenceError(f"{self.key} expects a boolean, got {value!r}")
        return value


class StringPreference(Preference[str]):

    def coerce(self, raw: Any) -> str:
        return str(raw)

    def validate(self, value: str) -> str:
        if not isinstance(value, str):
            raise PreferenceError(f"{self.key} expects a string, got {value!r}")
        return value


class IntPreference(Preference[int]):
    """Integer preference, optionally bounded to [min_value, max_value]"""

    def __init__(
        self,
        store: "PreferenceStore",
        key: str,
        default: int,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None
    ):
        super().__init__(store, key, default)
        self.min_value = min_value
        self.max_value = max_value

    def _clamp(self, value: int) -> int:
        if self.min_value is not None:
            value = max(self.min_value, value)
        if self.max_value is not None:
            value = min(self.max_value, value)
        return value

    def coerce(self, raw: Any) -> int:
        if isinstance(raw, bool):
            raise ValueError(f"not an integer: {raw!r}")
        # Values written by other processes may be out of range
        return self._clamp(int(raw))

    def validate(self, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise PreferenceError(f"{self.key} expects an integer, got {value!r}")
        if self._clamp(value) != value:
            raise PreferenceError(
                f"{self.key} must be between {self.min_value} and {self.max_value}, got {value}"
            )
        return value


class PreferenceStore(ABC):
    """
    Abstract key-value store

    Subclasses implement raw persistence; this class owns the typed
    preference factories and fan-out of change notifications.
    """

    def __init__(self):
        self._watchers: Dict[str, List[_Watcher]] = {}
        self._lock = threading.Lock()

    @abstractmethod
    def read(self, key: str) -> Any:
        """Return the stored value or None when the key is unset"""

    @abstractmethod
    def _write(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def _remove(self, key: str) -> None:
        pass

    def write(self, key: str, value: Any) -> None:
        self._write(key, value)
        self._notify(key, value)

    def remove(self, key: str) -> None:
        self._remove(key)
        self._notify(key, None)

    def close(self) -> None:
        pass

    # Typed factories

    def get_boolean(self, key: str, default: bool = False) -> BooleanPreference:
        return BooleanPreference(self, key, default)

    def get_string(self, key: str, default: str = "") -> StringPreference:
        return StringPreference(self, key, default)

    def get_int(
        self,
        key: str,
        default: int = 0,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None
    ) -> IntPreference:
        return IntPreference(self, key, default, min_value, max_value)

    # Change notifications

    def watch(self, key: str) -> _Watcher:
        """Register a watcher on the running loop for changes to key"""
        watcher = _Watcher(asyncio.get_running_loop())
        with self._lock:
            self._watchers.setdefault(key, []).append(watcher)
        return watcher

    def unwatch(self, key: str, watcher: _Watcher) -> None:
        with self._lock:
            watchers = self._watchers.get(key, [])
            if watcher in watchers:
                watchers.remove(watcher)
            if not watchers:
                self._watchers.pop(key, None)

    def watcher_count(self, key: str) -> int:
        with self._lock:
            return len(self._watchers.get(key, []))

    def _notify(self, key: str, value: Any) -> None:
        """Deliver a change to every watcher of key; safe from any thread"""
        with self._lock:
            watchers = list(self._watchers.get(key, []))

        for watcher in watchers:
            try:
                watcher.loop.call_soon_threadsafe(watcher.queue.put_nowait, value)
            except RuntimeError:
                # Subscriber's loop is closed
                logger.debug(f"Dropping watcher for {key!r} on closed loop")
                self.unwatch(key, watcher)


class InMemoryPreferenceStore(PreferenceStore):
    """Process-local store, used by default and in tests"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._values: Dict[str, Any] = dict(initial or {})

    def read(self, key: str) -> Any:
        return self._values.get(key)

    def _write(self, key: str, value: Any) -> None:
        self._values[key] = value

    def _remove(self, key: str) -> None:
        self._values.pop(key, None)


class EnhancementPreferences:
    """The enhancement settings as typed preferences"""

    ENABLED = "pref_enhancement_enabled"
    BASE_URL = "pref_enhancement_base_url"
    USE_DENOISER = "pref_enhancement_use_denoiser"
    USE_COLORIZER = "pref_enhancement_use_colorizer"
    USE_UPSCALER = "pref_enhancement_use_upscaler"
    DENOISER_SIGMA = "pref_enhancement_denoiser_sigma"
    USE_SERVER_CACHE = "pref_enhancement_use_server_cache"

    DENOISER_SIGMA_MIN = 0
    DENOISER_SIGMA_MAX = 150

    def __init__(self, store: PreferenceStore):
        self.store = store

    def enabled(self) -> BooleanPreference:
        return self.store.get_boolean(self.ENABLED, False)

    def base_url(self) -> StringPreference:
        return self.store.get_string(self.BASE_URL, "")

    def use_denoiser(self) -> BooleanPreference:
        return self.store.get_boolean(self.USE_DENOISER, True)

    def use_colorizer(self) -> BooleanPreference:
        return self.store.get_boolean(self.USE_COLORIZER, True)

    def use_upscaler(self) -> BooleanPreference:
        return self.store.get_boolean(self.USE_UPSCALER, False)

    def denoiser_sigma(self) -> IntPreference:
        return self.store.get_int(
            self.DENOISER_SIGMA, 25,
            min_value=self.DENOISER_SIGMA_MIN,
            max_value=self.DENOISER_SIGMA_MAX,
        )

    def use_server_cache(self) -> BooleanPreference:
        return self.store.get_boolean(self.USE_SERVER_CACHE, True)

    def all(self) -> Dict[str, Preference]:
        """All preferences keyed by their settings field name"""
        return {
            "enabled": self.enabled(),
            "base_url": self.base_url(),
            "use_denoiser": self.use_denoiser(),
            "use_colorizer": self.use_colorizer(),
            "use_upscaler": self.use_upscaler(),
            "denoiser_sigma": self.denoiser_sigma(),
            "use_server_cache": self.use_server_cache(),
        }

    def by_key(self, key: str) -> Preference:
        """Look up a preference by store key or settings field name"""
        for name, preference in self.all().items():
            if key in (name, preference.key):
                return preference
        raise KeyError(key)


def create_preference_store(config: Optional[Config] = None) -> PreferenceStore:
    """Build the store selected by config.preference_backend"""
    config = config or get_config()
    backend = config.preference_backend

    if backend == "memory":
        return InMemoryPreferenceStore()
    if backend == "redis":
        from .redis_store import RedisPreferenceStore
        store = RedisPreferenceStore.from_config(config.redis)
        store.start_listening()
        return store
    raise ValueError(f"Unknown preference backend: {backend!r}")
