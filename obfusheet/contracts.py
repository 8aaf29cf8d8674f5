"""
Versioned JSON payloads emitted by obfusheet.

A run summary names its contract and version so downstream tooling can
reject payloads it does not understand. Bump the version in
CONTRACT_VERSIONS whenever a field is renamed or removed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTRACT_VERSIONS = {
    "obfusheet.run_summary": "1.0.0",
}


def utc_now_iso() -> str:
    """Current UTC time, second precision, with a trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_contract(name: str) -> dict[str, str]:
    if name not in CONTRACT_VERSIONS:
        raise KeyError(f"Unknown contract: {name}")
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def build_run_summary(
    *,
    input_path: Path,
    output_path: Path | None = None,
    output_format: str,
    status: str = "ok",
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "obfusheet",
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "output_format": output_format,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
