"""
Tests for the EnhancementConfig settings mirror.
"""
import pytest

from enhancement_client.settings import EnhancementConfig, EnhancementSettings


class TestInitialState:
    """Test values before any subscription runs."""

    def test_defaults_from_preferences(self, preferences):
        """Test a fresh config mirrors the preference defaults."""
        config = EnhancementConfig(preferences)
        assert config.snapshot() == EnhancementSettings()

    def test_reads_stored_values(self, preferences):
        """Test stored values are visible immediately."""
        preferences.enabled().set(True)
        preferences.base_url().set("https://enhancer.local")
        config = EnhancementConfig(preferences)
        assert config.enabled is True
        assert config.base_url == "https://enhancer.local"

    def test_not_running_until_started(self, preferences):
        """Test construction alone starts no background work."""
        config = EnhancementConfig(preferences)
        assert not config.running


class TestMirroring:
    """Test store changes flowing into the in-memory fields."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sigma", [0, 75, 150])
    async def test_sigma_change_reflected(self, preferences, settle, sigma):
        """Test a sigma written to the store reaches the mirror."""
        async with EnhancementConfig(preferences) as config:
            preferences.denoiser_sigma().set(sigma)
            assert await settle(lambda: config.denoiser_sigma == sigma)

    @pytest.mark.asyncio
    async def test_all_fields_follow_store(self, preferences, settle):
        """Test each of the seven fields is mirrored."""
        async with EnhancementConfig(preferences) as config:
            preferences.enabled().set(True)
            preferences.base_url().set("https://enhancer.local/")
            preferences.use_denoiser().set(False)
            preferences.use_colorizer().set(False)
            preferences.use_upscaler().set(True)
            preferences.denoiser_sigma().set(90)
            preferences.use_server_cache().set(False)

            expected = EnhancementSettings(
                enabled=True,
                base_url="https://enhancer.local/",
                use_denoiser=False,
                use_colorizer=False,
                use_upscaler=True,
                denoiser_sigma=90,
                use_server_cache=False,
            )
            assert await settle(lambda: config.snapshot() == expected)

    @pytest.mark.asyncio
    async def test_delete_reverts_to_default(self, preferences, settle):
        """Test removing a key mirrors the default value."""
        preferences.use_upscaler().set(True)
        async with EnhancementConfig(preferences) as config:
            preferences.use_upscaler().delete()
            assert await settle(lambda: config.use_upscaler is False)


class TestChangeListener:
    """Test listener firing per distinct transition."""

    @pytest.mark.asyncio
    async def test_fires_once_per_distinct_value(self, preferences, settle):
        """Test repeated writes of the same value fire only once."""
        calls = []
        async with EnhancementConfig(preferences, on_change=lambda: calls.append(1)) as config:
            sigma = preferences.denoiser_sigma()

            sigma.set(40)
            assert await settle(lambda: len(calls) == 1)
            sigma.set(40)
            sigma.set(40)
            await settle(timeout=0.05)
            assert len(calls) == 1

            sigma.set(60)
            assert await settle(lambda: len(calls) == 2)
            assert config.denoiser_sigma == 60

    @pytest.mark.asyncio
    async def test_no_fire_on_start(self, preferences, settle):
        """Test subscribing does not report the initial values as changes."""
        calls = []
        async with EnhancementConfig(preferences, on_change=lambda: calls.append(1)):
            await settle(timeout=0.05)
        assert calls == []

    @pytest.mark.asyncio
    async def test_writing_current_value_does_not_fire(self, preferences, settle):
        """Test writing the value already held is not a transition."""
        calls = []
        async with EnhancementConfig(preferences, on_change=lambda: calls.append(1)):
            preferences.use_denoiser().set(True)
            preferences.denoiser_sigma().set(25)
            await settle(timeout=0.05)
        assert calls == []

    @pytest.mark.asyncio
    async def test_listener_assignable_later(self, preferences, settle):
        """Test on_change can be set after construction."""
        calls = []
        async with EnhancementConfig(preferences) as config:
            config.on_change = lambda: calls.append("late")
            preferences.enabled().set(True)
            assert await settle(lambda: calls == ["late"])

    @pytest.mark.asyncio
    async def test_subscription_cancel(self, preferences, settle):
        """Test a cancelled subscription stops receiving changes."""
        calls = []
        async with EnhancementConfig(preferences) as config:
            subscription = config.subscribe(lambda: calls.append(1))
            preferences.enabled().set(True)
            assert await settle(lambda: len(calls) == 1)

            subscription.cancel()
            assert not subscription.active
            preferences.enabled().set(False)
            assert await settle(lambda: config.enabled is False)
            assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failing_listener_keeps_subscription(self, preferences, settle):
        """Test a raising listener does not stop later updates."""
        def explode():
            raise RuntimeError("listener bug")

        async with EnhancementConfig(preferences, on_change=explode) as config:
            preferences.denoiser_sigma().set(10)
            assert await settle(lambda: config.denoiser_sigma == 10)
            preferences.denoiser_sigma().set(11)
            assert await settle(lambda: config.denoiser_sigma == 11)
            assert config.running


class TestLifecycle:
    """Test subscriptions end with their owner."""

    @pytest.mark.asyncio
    async def test_aclose_cancels_and_unwatches(self, preferences, store, settle):
        """Test closing cancels every task and removes store watchers."""
        config = EnhancementConfig(preferences).start()
        assert await settle(lambda: store.watcher_count("pref_enhancement_enabled") == 1)
        assert config.running

        await config.aclose()
        assert not config.running
        for pref in preferences.all().values():
            assert store.watcher_count(pref.key) == 0

    @pytest.mark.asyncio
    async def test_no_updates_after_close(self, preferences, settle):
        """Test changes after close are not mirrored."""
        config = EnhancementConfig(preferences).start()
        await config.aclose()

        preferences.enabled().set(True)
        await settle(timeout=0.05)
        assert config.enabled is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, preferences, store, settle):
        """Test starting twice does not double-subscribe."""
        config = EnhancementConfig(preferences)
        config.start()
        config.start()
        assert await settle(lambda: store.watcher_count("pref_enhancement_base_url") == 1)
        await settle(timeout=0.02)
        assert store.watcher_count("pref_enhancement_base_url") == 1
        await config.aclose()
