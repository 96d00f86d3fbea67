from __future__ import annotations

import hashlib
import json
import os
import platform
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import __version__
from .config import RunConfig

MANIFEST_SCHEMA_VERSION = 1
MANIFEST_COMMANDS = ("signif", "distrib", "depth", "subset", "freq")


def sha256_file(path: str | Path) -> str:
    h = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def now_utc_iso() -> str:
    fixed = os.environ.get("RADSIG_FIXED_TIMESTAMP_UTC")
    if fixed:
        return fixed
    return datetime.now(tz=timezone.utc).isoformat()


def get_system_metadata() -> dict[str, object]:
    return {
        "timestamp_utc": now_utc_iso(),
        "platform": platform.platform(),
        "machine": platform.machine(),
        "python_version": platform.python_version(),
        "cpu_count": os.cpu_count(),
    }


def build_manifest(
    *,
    command: str,
    argv: list[str],
    config: RunConfig,
    inputs: dict[str, str | Path],
    outputs: dict[str, str | Path],
    groups: tuple[str, ...],
    results: dict[str, object],
) -> dict[str, Any]:
    return {
        "schema_version": MANIFEST_SCHEMA_VERSION,
        "command": command,
        "command_line": "radsig " + " ".join(argv),
        "tool_version": __version__,
        "system": get_system_metadata(),
        "config": config.to_dict(),
        "groups": list(groups),
        "inputs": {
            name: {"path": str(Path(p).resolve()), "sha256": sha256_file(p)}
            for name, p in inputs.items()
        },
        "outputs": {name: str(Path(p).resolve()) for name, p in outputs.items()},
        "results": results,
    }


def _require_keys(payload: dict[str, Any], keys: list[str], label: str) -> None:
    missing = [k for k in keys if k not in payload]
    if missing:
        raise ValueError(f"{label} missing required keys: {', '.join(missing)}")


def validate_manifest_payload(payload: dict[str, Any]) -> None:
    if not isinstance(payload, dict):
        raise ValueError("manifest payload must be dict.")
    if int(payload.get("schema_version", -1)) != MANIFEST_SCHEMA_VERSION:
        raise ValueError(f"manifest schema_version must be {MANIFEST_SCHEMA_VERSION}.")
    _require_keys(
        payload,
        ["command", "tool_version", "system", "config", "groups", "inputs", "outputs", "results"],
        "manifest payload",
    )
    if payload["command"] not in MANIFEST_COMMANDS:
        raise ValueError(f"Unknown manifest command: {payload['command']}")
    if not isinstance(payload["groups"], list) or len(payload["groups"]) not in (0, 2):
        raise ValueError("manifest groups must list the two compared groups, or none.")
    RunConfig.from_dict(dict(payload["config"]))
    for name, entry in dict(payload["inputs"]).items():
        _require_keys(dict(entry), ["path", "sha256"], f"manifest input '{name}'")


def write_manifest(path: str | Path, payload: dict[str, Any]) -> Path:
    validate_manifest_payload(payload)
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
        handle.write("\n")
    return p
