"""
HTTP transport for enhancement calls

Each EnhancementClient builds its own httpx.AsyncClient here. The relaxed TLS
policy (no certificate or hostname verification) only ever applies to those
clients and only when TransportConfig.allow_insecure_tls is set.
"""
import logging
import ssl
from typing import Callable, Dict, List, Optional

import httpx

from .config import TransportConfig

logger = logging.getLogger(__name__)

EventHooks = Dict[str, List[Callable]]


def build_ssl_context(allow_insecure_tls: bool = False) -> ssl.SSLContext:
    """
    SSL context for the enhancement server

    Args:
        allow_insecure_tls: accept any certificate for any hostname
    """
    context = ssl.create_default_context()
    if allow_insecure_tls:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def is_insecure(context: ssl.SSLContext) -> bool:
    return not context.check_hostname and context.verify_mode == ssl.CERT_NONE


def build_enhancement_http_client(
    config: TransportConfig,
    ssl_context: Optional[ssl.SSLContext] = None,
    event_hooks: Optional[EventHooks] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Create the dedicated HTTP client for enhancement requests

    Args:
        config: transport settings, including the TLS opt-in
        ssl_context: prebuilt context, defaults to build_ssl_context(config)
        event_hooks: httpx request/response hooks (logging, auth headers);
            AsyncClient awaits them, so each hook must be a coroutine function
        transport: replacement transport, used by tests
    """
    if ssl_context is None:
        ssl_context = build_ssl_context(config.allow_insecure_tls)

    if config.allow_insecure_tls:
        logger.warning(
            "⚠️ Enhancement client accepts ANY TLS certificate and hostname "
            "(ENHANCEMENT_ALLOW_INSECURE_TLS=true)"
        )

    kwargs = {
        "verify": ssl_context,
        "headers": {"User-Agent": config.user_agent},
        "event_hooks": event_hooks or {},
        "follow_redirects": False,
    }
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    if transport is not None:
        kwargs["transport"] = transport

    return httpx.AsyncClient(**kwargs)
