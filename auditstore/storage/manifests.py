"""Run manifests written after each reconciliation pass."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import orjson


def write_manifest(manifest_dir: Path, run_id: str, payload: Dict[str, object]) -> Path:
    """Persist ``payload`` as ``run-<run_id>.json`` under ``manifest_dir``."""
    manifest_dir.mkdir(parents=True, exist_ok=True)
    target = manifest_dir / f"run-{run_id}.json"
    target.write_bytes(orjson.dumps({"run_id": run_id, **payload}, option=orjson.OPT_INDENT_2))
    return target


def load_manifests(manifest_dir: Path) -> List[Dict[str, object]]:
    """Return readable manifests, newest first."""
    manifests: List[Dict[str, object]] = []
    if not manifest_dir.exists():
        return manifests
    for path in sorted(manifest_dir.glob("run-*.json"), reverse=True):
        try:
            payload = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError:
            continue
        payload["__path__"] = str(path)
        manifests.append(payload)
    return manifests
