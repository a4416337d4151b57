from __future__ import annotations

import argparse
import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from parley.audio.vad import ENVIRONMENT_PRESETS, VadSettings

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "output_device": None,
    "sr": 16000,
    "channels": 1,
    "block_sec": 0.05,
    "environment": "quiet",
    # None means "take it from the environment preset".
    "silence_threshold": None,
    "silence_timeout": None,
    "smoothing_time_constant": None,
    "min_segment_sec": 0.5,
    "max_segment_sec": 15.0,
    "backend": "remote",
    "service_url": "http://127.0.0.1:3000",
    "request_timeout_sec": 30.0,
    "model": "base",
    "translator": "remote",
    "tts_enabled": True,
    "ui_language": "en",
    "print_console": True,
    "flush_on_exit": False,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def default_asset_config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "assets" / "config" / "default.json"


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("Parley", "Parley"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in CONFIG_KEYS:
        if key in payload:
            out[key] = payload[key]
    return out


def load_default_config() -> dict[str, Any]:
    path = default_asset_config_path()
    if not path.exists():
        return copy.deepcopy(DEFAULTS)
    loaded = _load_json_dict(path)
    out = copy.deepcopy(DEFAULTS)
    for key in DEFAULTS.keys():
        if key in loaded:
            out[key] = loaded[key]
    return out


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    loaded = _known_only(_load_json_dict(chosen))
    merged = dict(defaults)
    merged.update(loaded)
    return merged, chosen


def save_user_config(values: dict[str, Any], config_path: str | None = None) -> Path:
    payload = _known_only(values)
    defaults = load_default_config()
    if config_path:
        path = Path(config_path)
        existing = _known_only(_load_json_dict(path)) if path.exists() else {}
    else:
        path = ensure_user_config_exists(defaults)
        existing = _known_only(_load_json_dict(path))
    merged = dict(defaults)
    merged.update(existing)
    merged.update(payload)
    _write_json_dict(path, _known_only(merged))
    return path


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def vad_settings_from_args(args: Any) -> VadSettings:
    """Environment preset, with any explicitly set field taking precedence."""
    env = str(getattr(args, "environment", "quiet") or "quiet")
    if env not in ENVIRONMENT_PRESETS:
        raise ValueError(f"Unknown environment preset: {env}")
    preset = ENVIRONMENT_PRESETS[env]

    def pick(name: str) -> float:
        value = getattr(args, name, None)
        return float(getattr(preset, name) if value is None else value)

    return VadSettings(
        silence_threshold=pick("silence_threshold"),
        silence_timeout=pick("silence_timeout"),
        smoothing_time_constant=pick("smoothing_time_constant"),
    )


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="parley", description="Live two-way voice translation")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument(
        "--output-device",
        type=int,
        default=defaults["output_device"],
        help="sounddevice output device id for spoken translations",
    )
    p.add_argument("--sr", type=int, default=defaults["sr"], help="sample rate (Hz)")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument(
        "--block-sec",
        type=float,
        default=defaults["block_sec"],
        help="mic block size in seconds (VAD polling interval)",
    )
    p.add_argument(
        "--environment",
        default=defaults["environment"],
        choices=sorted(ENVIRONMENT_PRESETS),
        help="VAD preset for the room noise level",
    )
    p.add_argument(
        "--silence-threshold",
        type=float,
        default=defaults["silence_threshold"],
        help="normalized level (0-1) below which audio counts as silence",
    )
    p.add_argument(
        "--silence-timeout",
        type=float,
        default=defaults["silence_timeout"],
        help="seconds of continuous silence that end an utterance",
    )
    p.add_argument(
        "--smoothing-time-constant",
        type=float,
        default=defaults["smoothing_time_constant"],
        help="level smoothing factor in [0, 1)",
    )
    p.add_argument(
        "--min-segment-sec",
        type=float,
        default=defaults["min_segment_sec"],
        help="drop recordings shorter than this",
    )
    p.add_argument(
        "--max-segment-sec",
        type=float,
        default=defaults["max_segment_sec"],
        help="force a segment boundary while continuously speaking (seconds)",
    )
    p.add_argument(
        "--backend",
        default=defaults["backend"],
        choices=["remote", "local"],
        help="speech-to-text backend: HTTP service or local faster-whisper",
    )
    p.add_argument("--service-url", default=defaults["service_url"], help="base URL of the speech services")
    p.add_argument(
        "--request-timeout-sec",
        type=float,
        default=defaults["request_timeout_sec"],
        help="timeout for each remote call",
    )
    p.add_argument("--model", default=defaults["model"], help="faster-whisper model size (local backend)")
    p.add_argument("--translator", default=defaults["translator"], help="remote|argos")
    p.add_argument(
        "--tts",
        dest="tts_enabled",
        action=argparse.BooleanOptionalAction,
        default=defaults["tts_enabled"],
        help="speak finished translations aloud",
    )
    p.add_argument(
        "--ui-language",
        default=defaults["ui_language"],
        choices=["en", "ko"],
        help="language of error messages",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcripts and translations to console",
    )
    p.add_argument(
        "--flush-on-exit",
        action=argparse.BooleanOptionalAction,
        default=defaults["flush_on_exit"],
        help="translate the utterance still being recorded when stopping",
    )
    p.add_argument("--debug", action="store_true", help="log VAD levels and state transitions")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
