"""
Page enhancement pipeline

PageEnhancer is the caller side of the enhancement client: it decides
whether a page should be enhanced, runs one attempt per page in the
background and hands the enhanced image to the viewer. Attempts are tied to
the pages that started them and are cancelled when a page is replaced or the
enhancer is closed.
"""
import asyncio
import inspect
import io
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Union

from PIL import Image, UnidentifiedImageError

from .client import EnhancementClient
from .settings import EnhancementConfig, EnhancementSettings

logger = logging.getLogger(__name__)


@dataclass
class PageImage:
    """A decoded-from-source page ready to be displayed"""
    index: int
    image_bytes: bytes
    title: str
    chapter_label: str
    image_url: Optional[str] = None
    page_url: Optional[str] = None
    source_id: Optional[str] = None

    @property
    def resolved_url(self) -> Optional[str]:
        return self.image_url or self.page_url

    @property
    def image_name(self) -> str:
        return str(self.index)


EnhancedCallback = Callable[[PageImage, bytes], Union[None, Awaitable[None]]]


def is_animated(image_bytes: bytes) -> bool:
    """True for multi-frame images (GIF, APNG, animated WebP)"""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return bool(getattr(image, "is_animated", False))
    except Image.DecompressionBombError as e:
        # Very tall strips are still valid pages, the server decides
        logger.debug(f"Skipping animation check: {e}")
        return False
    except (UnidentifiedImageError, OSError, ValueError):
        # Unknown formats are left to the server
        return False


class PageEnhancer:
    """
    Schedules enhancement attempts for displayed pages

    Usage:
        async with PageEnhancer(config, client, on_enhanced=viewer.swap_image) as enhancer:
            enhancer.submit(page)
    """

    def __init__(
        self,
        config: EnhancementConfig,
        client: EnhancementClient,
        on_enhanced: EnhancedCallback
    ):
        self.config = config
        self.client = client
        self.on_enhanced = on_enhanced
        self._tasks: Dict[int, asyncio.Task] = {}

    def should_enhance(self, page: PageImage) -> bool:
        if not self.config.enabled:
            return False
        if is_animated(page.image_bytes):
            logger.debug(f"Page {page.index} is animated, keeping original")
            return False
        return True

    def submit(self, page: PageImage) -> Optional[asyncio.Task]:
        """
        Start enhancing a page in the background

        Returns the task, or None when enhancement is disabled or not
        applicable to this page. A previous attempt for the same page
        index is cancelled.
        """
        if not self.should_enhance(page):
            return None

        self.cancel(page.index)
        settings = self.config.snapshot()
        task = asyncio.get_running_loop().create_task(
            self._run(page, settings), name=f"enhance-page-{page.index}"
        )
        self._tasks[page.index] = task
        task.add_done_callback(lambda done, index=page.index: self._forget(index, done))
        return task

    def _forget(self, index: int, task: asyncio.Task) -> None:
        if self._tasks.get(index) is task:
            del self._tasks[index]

    async def _run(self, page: PageImage, settings: EnhancementSettings) -> bool:
        result = await self.client.enhance(
            image_name=page.image_name,
            image_bytes=page.image_bytes,
            image_url=page.resolved_url,
            source_id=page.source_id,
            title=page.title,
            chapter_label=page.chapter_label,
            settings=settings,
        )
        if result is None:
            return False

        try:
            delivered = self.on_enhanced(page, result.image_bytes)
            if inspect.isawaitable(delivered):
                await delivered
        except Exception as e:
            logger.error(f"Failed to display enhanced page {page.index}: {e}", exc_info=True)
            return False
        return True

    def pending(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def cancel(self, index: int) -> bool:
        """Cancel the in-flight attempt for a page, if any"""
        task = self._tasks.pop(index, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Cancelled enhancement of page {index}")
        return True

    async def aclose(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "PageEnhancer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
