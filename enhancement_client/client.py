"""
Remote Image Enhancement Client
Sends a page image to the enhancement server (denoise/colorize/upscale)
and returns the enhanced image

Enhancement is best-effort: every failure is logged and reported as
"no result" so the caller keeps showing the original image. Only task
cancellation propagates.
"""
import logging
import ssl
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from pydantic import ValidationError

from .config import TransportConfig, get_config
from .logging_config import create_request_logger
from .models import EnhancementRequest, EnhancementResult
from .settings import EnhancementSettings
from .transport import EventHooks, build_enhancement_http_client, build_ssl_context, is_insecure

logger = logging.getLogger(__name__)

ENHANCE_PATH = "/colorize-image-data"


class FailureKind(str, Enum):
    """Why an enhancement attempt produced no result"""
    CONFIGURATION = "configuration"     # Unusable base URL, no request sent
    TRANSPORT = "transport"             # DNS, connect, TLS, timeout
    PROTOCOL = "protocol"               # Non-2xx status
    DECODE = "decode"                   # Malformed JSON or base64
    UNEXPECTED = "unexpected"


@dataclass
class EnhancementOutcome:
    """Result of one enhancement attempt"""
    success: bool
    result: Optional[EnhancementResult] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    latency_ms: int = 0

    @property
    def image_bytes(self) -> Optional[bytes]:
        return self.result.image_bytes if self.result else None

    @classmethod
    def failed(cls, failure: FailureKind, error: str, **kwargs) -> "EnhancementOutcome":
        return cls(success=False, failure=failure, error=error, **kwargs)


class EnhancementConfigError(ValueError):
    """The settings cannot produce a valid enhancement request"""


def build_enhance_url(base_url: str) -> str:
    """
    Resolve the enhancement endpoint for a configured base URL

    Raises:
        EnhancementConfigError: base URL is empty or not http(s)
    """
    base = (base_url or "").strip()
    if not base:
        raise EnhancementConfigError("Enhancement base URL is not configured")

    try:
        url = httpx.URL(base.rstrip("/") + ENHANCE_PATH)
    except httpx.InvalidURL as e:
        raise EnhancementConfigError(f"Invalid enhancement base URL {base!r}: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise EnhancementConfigError(
            f"Enhancement base URL must be an http(s) URL with a host, got {base!r}"
        )
    return str(url)


class EnhancementClient:
    """
    Client for the enhancement server's /colorize-image-data endpoint

    Stateless and safe for concurrent use; the underlying connection pool is
    released with aclose() or by using the client as an async context manager.
    The client never checks settings.enabled, callers gate on it.
    """

    def __init__(
        self,
        transport_config: Optional[TransportConfig] = None,
        event_hooks: Optional[EventHooks] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            transport_config: TLS opt-in and timeout, defaults to the global config
            event_hooks: httpx hooks added to every enhancement request, as
                coroutine functions (``{"request": [async_hook]}``)
            transport: replacement httpx transport (tests)
        """
        self.transport_config = transport_config or get_config().transport
        self.ssl_context: ssl.SSLContext = build_ssl_context(self.transport_config.allow_insecure_tls)
        self._http = build_enhancement_http_client(
            self.transport_config,
            ssl_context=self.ssl_context,
            event_hooks=event_hooks,
            transport=transport,
        )

    @property
    def verifies_certificates(self) -> bool:
        return not is_insecure(self.ssl_context)

    async def enhance(
        self,
        image_name: Optional[str],
        image_bytes: bytes,
        image_url: Optional[str],
        source_id: Optional[str],
        title: str,
        chapter_label: str,
        settings: EnhancementSettings
    ) -> Optional[EnhancementResult]:
        """
        Enhance one image

        Args:
            image_name: name reported to the server (page index)
            image_bytes: raw encoded image, not base64
            image_url: where the image was loaded from
            source_id: source/scanlator identifier
            title: series title
            chapter_label: chapter name
            settings: settings snapshot taken by the caller

        Returns:
            EnhancementResult, or None when enhancement failed for any reason
        """
        outcome = await self.try_enhance(
            image_name, image_bytes, image_url, source_id, title, chapter_label, settings
        )
        return outcome.result

    async def try_enhance(
        self,
        image_name: Optional[str],
        image_bytes: bytes,
        image_url: Optional[str],
        source_id: Optional[str],
        title: str,
        chapter_label: str,
        settings: EnhancementSettings
    ) -> EnhancementOutcome:
        """Same as enhance(), reporting why no result was produced"""
        request_id = uuid.uuid4().hex[:12]

        try:
            url = build_enhance_url(settings.base_url)
        except EnhancementConfigError as e:
            logger.error(f"Enhancement {request_id} not sent: {e}")
            return EnhancementOutcome.failed(FailureKind.CONFIGURATION, str(e))

        try:
            payload = EnhancementRequest.build(
                image_name, image_bytes, image_url, source_id, title, chapter_label, settings
            ).to_payload()
        except (ValueError, ValidationError) as e:
            logger.error(f"Enhancement {request_id} not sent, invalid request: {e}")
            return EnhancementOutcome.failed(FailureKind.CONFIGURATION, str(e))

        request_log = create_request_logger(__name__)
        request_log.start_request(
            request_id,
            url,
            image_name=image_name,
            image_size_bytes=len(image_bytes),
            colorize=settings.use_colorizer,
            denoise=settings.use_denoiser,
            upscale=settings.use_upscaler,
            denoise_sigma=settings.denoiser_sigma,
            cache=settings.use_server_cache,
        )

        status_code = None
        try:
            response = await self._http.post(url, json=payload)
            status_code = response.status_code

            if not response.is_success:
                error = f"Enhancement server returned HTTP {status_code}"
                latency = request_log.end_request(False, error=error)
                return EnhancementOutcome.failed(
                    FailureKind.PROTOCOL, error, status_code=status_code, latency_ms=latency
                )

            result = EnhancementResult.model_validate_json(response.content)

        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {e}"
            latency = request_log.end_request(False, error=error)
            return EnhancementOutcome.failed(FailureKind.TRANSPORT, error, latency_ms=latency)

        except (ValidationError, ValueError) as e:
            error = f"Failed to decode enhancement response: {e}"
            latency = request_log.end_request(False, status=status_code, error=error)
            return EnhancementOutcome.failed(
                FailureKind.DECODE, error, status_code=status_code, latency_ms=latency
            )

        except Exception as e:
            error = f"Enhancement failed: {e}"
            logger.exception(f"Unexpected error in enhancement {request_id}")
            latency = request_log.end_request(False, error=error)
            return EnhancementOutcome.failed(
                FailureKind.UNEXPECTED, error, status_code=status_code, latency_ms=latency
            )

        latency = request_log.end_request(True, status=status_code, result_size_bytes=result.size_bytes)
        return EnhancementOutcome(
            success=True, result=result, status_code=status_code, latency_ms=latency
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "EnhancementClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
