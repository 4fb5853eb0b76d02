"""
Enhancement settings and one-off enhancement from the command line

    enhancement-client show
    enhancement-client set denoiser_sigma 40
    enhancement-client reset base_url
    enhancement-client enhance page.png --title "Series" --chapter "Ch. 1" --output out.png
"""
import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .client import EnhancementClient
from .config import get_config
from .logging_config import setup_logging
from .preferences import (
    BooleanPreference,
    EnhancementPreferences,
    IntPreference,
    Preference,
    PreferenceError,
    create_preference_store,
)
from .settings import EnhancementConfig

logger = logging.getLogger(__name__)


def parse_value(preference: Preference, text: str) -> Any:
    """Convert command line text to the preference's type"""
    if isinstance(preference, BooleanPreference):
        lowered = text.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
        raise PreferenceError(f"{preference.key} expects true/false, got {text!r}")
    if isinstance(preference, IntPreference):
        try:
            return int(text)
        except ValueError:
            raise PreferenceError(f"{preference.key} expects an integer, got {text!r}") from None
    return text


def cmd_show(preferences: EnhancementPreferences, args) -> int:
    print("\n" + "=" * 60)
    print("ENHANCEMENT SETTINGS")
    print("=" * 60)
    for name, preference in preferences.all().items():
        marker = "" if preference.is_set() else "  (default)"
        print(f"{name:<18} {preference.get()!r}{marker}")
    print("=" * 60)
    return 0


def cmd_set(preferences: EnhancementPreferences, args) -> int:
    try:
        preference = preferences.by_key(args.key)
        preference.set(parse_value(preference, args.value))
    except KeyError:
        print(f"Unknown setting: {args.key}", file=sys.stderr)
        return 2
    except PreferenceError as e:
        print(f"Invalid value: {e}", file=sys.stderr)
        return 2
    print(f"{preference.key} = {preference.get()!r}")
    return 0


def cmd_reset(preferences: EnhancementPreferences, args) -> int:
    try:
        preference = preferences.by_key(args.key)
    except KeyError:
        print(f"Unknown setting: {args.key}", file=sys.stderr)
        return 2
    preference.delete()
    print(f"{preference.key} reset to {preference.default!r}")
    return 0


async def _enhance(preferences: EnhancementPreferences, args) -> int:
    settings = EnhancementConfig(preferences).snapshot()
    if args.base_url:
        settings = dataclasses.replace(settings, base_url=args.base_url)

    if not settings.enabled and not args.force:
        print("Enhancement is disabled (use --force or `set enabled true`)", file=sys.stderr)
        return 1

    image_path = Path(args.file)
    image_bytes = image_path.read_bytes()

    async with EnhancementClient() as client:
        outcome = await client.try_enhance(
            image_name=args.name or image_path.name,
            image_bytes=image_bytes,
            image_url=args.url,
            source_id=args.source,
            title=args.title,
            chapter_label=args.chapter,
            settings=settings,
        )

    if not outcome.success:
        print(f"No enhanced image ({outcome.failure.value}): {outcome.error}")
        print("Original image kept.")
        return 1

    output = Path(args.output) if args.output else image_path.with_name(
        f"{image_path.stem}_enhanced{image_path.suffix}"
    )
    output.write_bytes(outcome.image_bytes)
    print(f"Enhanced image written: {output} ({len(outcome.image_bytes)} bytes, {outcome.latency_ms}ms)")
    return 0


def cmd_enhance(preferences: EnhancementPreferences, args) -> int:
    return asyncio.run(_enhance(preferences, args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="enhancement-client",
        description="Manage enhancement settings and enhance single images"
    )
    parser.add_argument('--log-level', default=None, help='Logging level (defaults to LOG_LEVEL)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('show', help='Show current settings')

    set_parser = subparsers.add_parser('set', help='Change a setting')
    set_parser.add_argument('key', help='Setting name (e.g. denoiser_sigma) or preference key')
    set_parser.add_argument('value', help='New value')

    reset_parser = subparsers.add_parser('reset', help='Restore a setting to its default')
    reset_parser.add_argument('key', help='Setting name or preference key')

    enhance_parser = subparsers.add_parser('enhance', help='Enhance one image file')
    enhance_parser.add_argument('file', help='Path to the image')
    enhance_parser.add_argument('--title', required=True, help='Series title')
    enhance_parser.add_argument('--chapter', required=True, help='Chapter label')
    enhance_parser.add_argument('--name', help='Image name sent to the server (defaults to file name)')
    enhance_parser.add_argument('--url', help='Original image URL')
    enhance_parser.add_argument('--source', help='Source identifier')
    enhance_parser.add_argument('--base-url', help='Override the configured server URL')
    enhance_parser.add_argument('--output', help='Output path (defaults to <name>_enhanced.<ext>)')
    enhance_parser.add_argument('--force', action='store_true', help='Enhance even if disabled')

    return parser


COMMANDS = {
    'show': cmd_show,
    'set': cmd_set,
    'reset': cmd_reset,
    'enhance': cmd_enhance,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = get_config()
    setup_logging(level=args.log_level or config.log_level)

    store = create_preference_store(config)
    try:
        return COMMANDS[args.command](EnhancementPreferences(store), args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
