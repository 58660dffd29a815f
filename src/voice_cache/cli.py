"""
Command-line interface for voice-cache.

Operator tasks without running the HTTP server.

Usage Examples:
    # Regenerate one message, several, or the whole directory
    voice-cache regenerate --owner msg_42
    voice-cache regenerate --owner msg_1 --owner msg_2
    voice-cache regenerate --all --json

    # Evict entries older than 30 days
    voice-cache clear --days 30

    # Cache statistics
    voice-cache stats --json

    # Write a message's audio to a file (generates on a miss)
    voice-cache audio --owner msg_42 --out msg_42.mp3

    # Show the cache key for a text and voice, no provider call
    voice-cache fingerprint --text "Welcome back" --voice-id v1 --stability 0.6

    # Dry run against the offline stub provider
    voice-cache regenerate --all --provider stub --store-dir /tmp/vc

Exit codes:
    0  success
    1  operation failed, or at least one owner failed to regenerate
    2  invalid arguments or configuration

Environment Variables:
    VOICE_CACHE_SETTINGS: settings file (default config/settings.yaml)
    VOICE_CACHE_STORE_DIR: store directory override
    VOICE_CACHE_TTS_PROVIDER: provider override (elevenlabs, stub)
    ELEVENLABS_API_KEY: API key for the ElevenLabs provider
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from voice_cache.cache.fingerprint import fingerprint, text_hash
from voice_cache.cache.models import VoiceConfig
from voice_cache.core.config import ConfigValidationError, Settings, VoiceCacheConfig, load_settings_or_default
from voice_cache.core.errors import VoiceCacheError
from voice_cache.core.logging import configure_logging, fail, get_logger, info, set_request_id
from voice_cache.services.voice_service import VoiceCacheService


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voice-cache", description="voice-cache operator CLI")
    parser.add_argument("--settings", help="Settings YAML (default: VOICE_CACHE_SETTINGS or config/settings.yaml)")
    parser.add_argument("--store-dir", help="Store directory override")
    parser.add_argument("--messages", help="Messages YAML override")
    parser.add_argument("--provider", choices=["elevenlabs", "stub"], help="TTS provider override")
    parser.add_argument("--json", action="store_true", help="Print a JSON summary")

    sub = parser.add_subparsers(dest="command", required=True)

    regen = sub.add_parser("regenerate", help="Force re-synthesis")
    target = regen.add_mutually_exclusive_group(required=True)
    target.add_argument("--owner", action="append", dest="owners", metavar="ID",
                        help="Owner to regenerate (repeatable)")
    target.add_argument("--all", action="store_true", help="Regenerate every owner in the directory")
    regen.add_argument("--workers", type=int, help="Owners regenerated in parallel")

    clear = sub.add_parser("clear", help="Evict entries older than N days")
    clear.add_argument("--days", type=float, help="Age threshold (default: maintenance.default_days)")

    sub.add_parser("stats", help="Show cache statistics")

    audio = sub.add_parser("audio", help="Write a message's audio to a file")
    audio.add_argument("--owner", required=True, metavar="ID")
    audio.add_argument("--out", help="Output path (default: <owner>.mp3)")

    fp = sub.add_parser("fingerprint", help="Compute the cache key for a text and voice")
    fp.add_argument("--text", required=True)
    fp.add_argument("--voice-id")
    fp.add_argument("--model-id")
    fp.add_argument("--stability", type=float)
    fp.add_argument("--similarity-boost", type=float)
    fp.add_argument("--style", type=float)
    fp.add_argument("--speed", type=float)

    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> VoiceCacheConfig:
    settings = load_settings_or_default(args.settings)
    raw = dict(settings.raw)
    if args.store_dir:
        raw["store"] = {**(raw.get("store") or {}), "base_dir": args.store_dir}
    if args.messages:
        raw["messages"] = {**(raw.get("messages") or {}), "path": args.messages}
    if getattr(args, "workers", None):
        raw["regeneration"] = {**(raw.get("regeneration") or {}), "max_workers": args.workers}
    config = VoiceCacheConfig.from_settings(Settings(raw=raw))
    # Command line wins over VOICE_CACHE_TTS_PROVIDER
    if args.provider:
        config.tts.provider = args.provider
    return config


def _build_service(config: VoiceCacheConfig) -> VoiceCacheService:
    return VoiceCacheService(config)


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False, default=str))
        return
    for k, v in payload.items():
        if k == "outcomes":
            for o in v:
                status = "ok" if o["succeeded"] else f"FAILED {o['error_code']}: {o['error_message']}"
                print(f"  {o['owner_id']}: {status}")
        else:
            print(f"{k}: {v}")


def _fingerprint(args: argparse.Namespace, config: VoiceCacheConfig) -> Dict[str, Any]:
    overrides = {
        "voice_id": args.voice_id,
        "model_id": args.model_id,
        "stability": args.stability,
        "similarity_boost": args.similarity_boost,
        "style": args.style,
        "speed": args.speed,
    }
    voice = VoiceConfig.from_dict(overrides, base=VoiceConfig.from_dict(config.tts.default_voice))
    return {
        "ok": True,
        "key": fingerprint(args.text, voice),
        "text_hash": text_hash(args.text),
        "voice_config": voice.to_dict(),
    }


def _run(args: argparse.Namespace, service: VoiceCacheService) -> tuple[int, Dict[str, Any]]:
    if args.command == "regenerate":
        if args.all:
            result = service.regenerate_all()
        else:
            result = service.regenerate_all(args.owners)
        return (0 if result.failed == 0 else 1), {"ok": result.failed == 0, **result.to_dict()}

    if args.command == "clear":
        days = service.config.maintenance.default_days if args.days is None else args.days
        removed = service.clear_older_than(days)
        return 0, {"ok": True, "days": days, "removed": removed}

    if args.command == "stats":
        return 0, {"ok": True, **service.compute_statistics().to_dict()}

    if args.command == "audio":
        audio = service.audio_for_owner(args.owner)
        out = Path(args.out or f"{args.owner}.mp3")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(audio)
        return 0, {"ok": True, "owner_id": args.owner, "out": str(out), "bytes": len(audio)}

    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 success, 1 failure, 2 bad arguments or configuration).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("voice-cache.cli")
    set_request_id(str(uuid4())[:12])

    try:
        config = _load_config(args)
    except (ConfigValidationError, ValueError) as e:
        fail(log, "bad_config", error=str(e))
        _emit({"ok": False, "error": "INVALID_CONFIG", "message": str(e)}, args.json)
        return 2

    if args.command == "fingerprint":
        _emit(_fingerprint(args, config), args.json)
        return 0

    try:
        service = _build_service(config)
    except ValueError as e:
        fail(log, "service_init_failed", error=str(e))
        _emit({"ok": False, "error": "INVALID_CONFIG", "message": str(e)}, args.json)
        return 2

    try:
        info(log, "command_start", command=args.command)
        code, payload = _run(args, service)
    except VoiceCacheError as e:
        fail(log, "command_failed", command=args.command, code=e.code, error=e.message)
        code, payload = 1, e.to_dict()
    finally:
        service.close()

    _emit(payload, args.json)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
