from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_EVENTS_PATH = PROJECT_ROOT / "data" / "marketplace_events.jsonl"


def events_path() -> Path:
    raw = (os.environ.get("MARKETPLACE_EVENTS_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_EVENTS_PATH


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def emit_event(
    event_type: str,
    source: str,
    payload: Dict | None = None,
    *,
    lane: str = "economy",
    severity: str = "info",
    detail: str | None = None,
) -> Dict:
    """Append a normalized event line to the marketplace audit trail."""
    row = {
        "ts": _iso_now(),
        "type": str(event_type or "event"),
        "source": str(source or "unknown"),
        "lane": str(lane or "economy"),
        "severity": str(severity or "info"),
        "detail": str(detail or ""),
        "payload": payload or {},
    }
    path = events_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=True) + "\n")
    return row


def read_events(limit: int = 100, lane: str | None = None) -> List[Dict]:
    path = events_path()
    if not path.exists():
        return []
    lines = path.read_text(encoding="utf-8", errors="ignore").splitlines()
    out: List[Dict] = []
    for raw in reversed(lines):
        try:
            row = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if lane and str(row.get("lane") or "") != lane:
            continue
        out.append(row)
        if len(out) >= max(1, int(limit)):
            break
    return list(reversed(out))
