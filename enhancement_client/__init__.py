"""
Remote Image Enhancement Client
Best-effort denoise/colorize/upscale of reader pages by a remote server,
driven by hot-reloadable preferences
"""
from .config import get_config, Config, TransportConfig, RedisConfig
from .preferences import (
    PreferenceStore,
    InMemoryPreferenceStore,
    Preference,
    PreferenceError,
    EnhancementPreferences,
    create_preference_store,
)
from .settings import EnhancementConfig, EnhancementSettings, Subscription
from .models import EnhancementRequest, EnhancementResult
from .codec import encode_image_data, decode_image_data
from .client import (
    EnhancementClient,
    EnhancementOutcome,
    EnhancementConfigError,
    FailureKind,
    build_enhance_url,
)
from .transport import build_ssl_context, build_enhancement_http_client
from .pipeline import PageEnhancer, PageImage, is_animated

__all__ = [
    # Config
    'get_config',
    'Config',
    'TransportConfig',
    'RedisConfig',

    # Preferences
    'PreferenceStore',
    'InMemoryPreferenceStore',
    'Preference',
    'PreferenceError',
    'EnhancementPreferences',
    'create_preference_store',

    # Settings mirror
    'EnhancementConfig',
    'EnhancementSettings',
    'Subscription',

    # Wire models
    'EnhancementRequest',
    'EnhancementResult',
    'encode_image_data',
    'decode_image_data',

    # Client
    'EnhancementClient',
    'EnhancementOutcome',
    'EnhancementConfigError',
    'FailureKind',
    'build_enhance_url',
    'build_ssl_context',
    'build_enhancement_http_client',

    # Caller
    'PageEnhancer',
    'PageImage',
    'is_animated',
]
