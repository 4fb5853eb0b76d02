"""
Pytest configuration and fixtures for enhancement client tests.
"""
import asyncio
import base64
import io
import json

import httpx
import pytest
from PIL import Image

from enhancement_client.config import TransportConfig
from enhancement_client.preferences import EnhancementPreferences, InMemoryPreferenceStore
from enhancement_client.settings import EnhancementSettings


@pytest.fixture
def store():
    """Empty in-memory preference store."""
    return InMemoryPreferenceStore()


@pytest.fixture
def preferences(store):
    """Enhancement preferences over the in-memory store."""
    return EnhancementPreferences(store)


@pytest.fixture
def settings():
    """Enabled settings pointing at the mocked server."""
    return EnhancementSettings(enabled=True, base_url="https://enhancer.test")


@pytest.fixture
def transport_config():
    """Strict TLS, short timeout."""
    return TransportConfig(allow_insecure_tls=False, timeout=5.0)


@pytest.fixture
def png_bytes():
    """Small PNG page image."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def enhanced_png_bytes():
    """A different PNG, standing in for the server's output."""
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), color=(30, 200, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def animated_gif_bytes():
    """Two-frame GIF."""
    frames = [Image.new("RGB", (4, 4), color=color) for color in ((255, 0, 0), (0, 0, 255))]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buffer.getvalue()


@pytest.fixture
def ok_response():
    """Factory for a 200 response carrying the given image bytes."""
    def build(image_bytes: bytes) -> httpx.Response:
        body = {"colorImgData": base64.b64encode(image_bytes).decode("ascii")}
        return httpx.Response(200, content=json.dumps(body).encode("utf-8"))
    return build


@pytest.fixture
def settle():
    """Wait until a condition holds, letting subscription tasks run."""
    async def wait(predicate=lambda: False, timeout: float = 0.2):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate() and loop.time() < deadline:
            await asyncio.sleep(0.005)
        return predicate()
    return wait
