"""Administrative status helpers."""
from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

from auditstore.orchestrator.checkpoint import CheckpointStore
from auditstore.storage.manifests import load_manifests


def checkpoint_status(path: Path) -> Dict[str, object]:
    """Describe the checkpoint file and where the next run would resume."""
    summary = CheckpointStore(path).summary()
    return {
        "path": str(path),
        "entries": summary.entries,
        "last_entry": summary.last_entry,
        "resume_cursor": summary.resume_cursor,
    }


def summarise_runs(manifest_dir: Path, *, last: int = 5) -> List[Dict[str, object]]:
    """Summarise the most recent run manifests."""
    rows = []
    for manifest in load_manifests(manifest_dir)[:last]:
        rows.append({
            "run_id": manifest.get("run_id"),
            "num_urls": manifest.get("num_urls", 0),
            "num_removed": manifest.get("num_removed", 0),
            "num_failed": manifest.get("num_failed", 0),
            "start_after": manifest.get("start_after"),
        })
    return rows


def invalid_by_host(path: Path, *, host: Optional[str] = None) -> Dict[str, int]:
    """Count checkpointed URLs per host, optionally restricted to one host."""
    counter: Counter[str] = Counter()
    for url in CheckpointStore(path).load():
        netloc = urlparse(url).netloc or url
        if host and netloc != host:
            continue
        counter[netloc] += 1
    return dict(counter.most_common())
