"""
In-memory mirror of the enhancement settings

EnhancementConfig follows the seven enhancement preferences, one asyncio task
per key, and calls its listeners whenever a field takes a new value. Its
lifetime is bound to the component that owns it: close() cancels every
subscription.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .preferences import EnhancementPreferences, Preference

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


@dataclass(frozen=True)
class EnhancementSettings:
    """Snapshot of the enhancement settings at one point in time"""
    enabled: bool = False
    base_url: str = ""
    use_denoiser: bool = True
    use_colorizer: bool = True
    use_upscaler: bool = False
    denoiser_sigma: int = 25
    use_server_cache: bool = True


class Subscription:
    """Handle returned by EnhancementConfig.subscribe"""

    def __init__(self, config: "EnhancementConfig", listener: ChangeListener):
        self._config = config
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._config._remove_listener(self.listener)
            self.active = False


class EnhancementConfig:
    """
    Observable enhancement configuration

    Fields are updated independently as the backing store emits changes.
    Readers get last-known values per field; there is no multi-field
    atomicity, use snapshot() to capture all fields at once.

    Usage:
        async with EnhancementConfig(preferences) as config:
            config.on_change = redraw
            ...
    """

    def __init__(
        self,
        preferences: EnhancementPreferences,
        on_change: Optional[ChangeListener] = None
    ):
        self.preferences = preferences
        self.on_change = on_change
        self._listeners: List[ChangeListener] = []
        self._preferences: Dict[str, Preference] = preferences.all()
        self._values = {name: pref.get() for name, pref in self._preferences.items()}
        self._tasks: List[asyncio.Task] = []

    # Read-only fields

    @property
    def enabled(self) -> bool:
        return self._values["enabled"]

    @property
    def base_url(self) -> str:
        return self._values["base_url"]

    @property
    def use_denoiser(self) -> bool:
        return self._values["use_denoiser"]

    @property
    def use_colorizer(self) -> bool:
        return self._values["use_colorizer"]

    @property
    def use_upscaler(self) -> bool:
        return self._values["use_upscaler"]

    @property
    def denoiser_sigma(self) -> int:
        return self._values["denoiser_sigma"]

    @property
    def use_server_cache(self) -> bool:
        return self._values["use_server_cache"]

    def snapshot(self) -> EnhancementSettings:
        return EnhancementSettings(**self._values)

    # Listeners

    def subscribe(self, listener: ChangeListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _fire_change(self, name: str) -> None:
        listeners = list(self._listeners)
        if self.on_change is not None:
            listeners.insert(0, self.on_change)

        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Change listener failed after {name} update: {e}", exc_info=True)

    # Lifecycle

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> "EnhancementConfig":
        """Subscribe to every preference on the running event loop"""
        if self._tasks:
            return self
        loop = asyncio.get_running_loop()
        for name, preference in self._preferences.items():
            task = loop.create_task(self._follow(name, preference), name=f"enhancement-config:{name}")
            self._tasks.append(task)
        logger.debug(f"EnhancementConfig following {len(self._tasks)} preferences")
        return self

    async def _follow(self, name: str, preference: Preference) -> None:
        previous = self._values[name]
        async for value in preference.changes():
            self._values[name] = value
            if value != previous:
                previous = value
                logger.debug(f"Enhancement setting {name} -> {value!r}")
                self._fire_change(name)

    def close(self) -> None:
        """Cancel all subscriptions without waiting for them"""
        for task in self._tasks:
            task.cancel()

    async def aclose(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "EnhancementConfig":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
