"""Resumable progress store: an append-only JSON Lines event log.

Every outcome is one line, written with flush + fsync before the pipeline
moves on, so a crash loses at most the line being written. Replaying the log
rebuilds the IngestionProgress snapshot; a torn or corrupt line is skipped.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from card_ingest.models import CardKey, IngestionProgress, ItemOutcome

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressStore:
    """Manages ingestion progress backed by a JSONL file."""

    def __init__(self, progress_file: str) -> None:
        self._path = Path(progress_file)
        self._progress: Optional[IngestionProgress] = None
        self._loaded = False
        self._dangling = False  # file ends without a newline (torn write)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def progress(self) -> Optional[IngestionProgress]:
        if not self._loaded:
            self.load()
        return self._progress

    def load(self) -> Optional[IngestionProgress]:
        """Replay the log from disk. Returns None when there is no prior run."""
        self._loaded = True
        self._progress = None
        self._dangling = False
        if not self._path.exists():
            logger.info("No progress file at %s, starting fresh", self._path)
            return None

        text = self._path.read_text(encoding="utf-8", errors="replace")
        self._dangling = bool(text) and not text.endswith("\n")
        skipped = 0
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                event = json.loads(line)
                self._apply(event)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                skipped += 1
                logger.warning("Skipping corrupt progress line %d in %s: %s", lineno, self._path, exc)
        if skipped:
            logger.warning("%d corrupt line(s) ignored in %s", skipped, self._path)
        return self._progress

    def begin(self, total: int) -> IngestionProgress:
        """Start a run, or resume the existing one with an updated total."""
        progress = self.progress
        if progress is None:
            now = _now()
            event = {"event": "start", "run": uuid.uuid4().hex[:12], "started_at": now, "total": total}
        else:
            logger.info(
                "Resuming run %s from %s (%d already processed)",
                progress.run_id,
                progress.started_at,
                progress.processed,
            )
            event = {
                "event": "start",
                "run": progress.run_id,
                "started_at": progress.started_at,
                "total": total,
            }
        self._append(event)
        self._apply(event)
        return self._progress  # type: ignore[return-value]

    def set_partition(self, partition: str) -> None:
        event = {"event": "partition", "partition": partition, "at": _now()}
        self._append(event)
        self._apply(event)

    def record(
        self,
        key: str,
        outcome: ItemOutcome,
        partition: str,
        error: Optional[str] = None,
    ) -> None:
        """Durably record one item outcome. Re-recording a key replaces its outcome."""
        event: Dict[str, Any] = {
            "event": "item",
            "key": key,
            "outcome": outcome.value,
            "partition": partition,
            "at": _now(),
        }
        if error:
            event["error"] = error
        self._append(event)
        self._apply(event)

    def is_done(self, key: str) -> bool:
        progress = self.progress
        return progress is not None and progress.is_done(key)

    def clear(self) -> None:
        """Remove the progress file."""
        if self._path.exists():
            self._path.unlink()
            logger.info("Deleted progress file %s", self._path)
        self._progress = None
        self._loaded = True
        self._dangling = False

    def summary(self) -> Dict[str, Any]:
        """Return a human-readable summary of current progress."""
        progress = self.progress
        if progress is None:
            return {"exists": False}

        per_partition: Dict[str, Counter] = {}
        for key, outcome in progress.outcomes.items():
            counts = per_partition.setdefault(_partition_of(key), Counter())
            counts[outcome.value] += 1

        return {
            "exists": True,
            "run_id": progress.run_id,
            "started_at": progress.started_at,
            "updated_at": progress.updated_at,
            "total": progress.total,
            "processed": progress.processed,
            "success": progress.success,
            "errors": progress.errors,
            "remaining": max(0, progress.total - progress.processed),
            "current_partition": progress.current_partition,
            "partitions": {
                name: {
                    "success": counts["success"],
                    "errors": counts["error"],
                    "skipped": counts["skipped"],
                }
                for name, counts in sorted(per_partition.items())
            },
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, event: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(event, ensure_ascii=False) + "\n"
        if self._dangling:
            line = "\n" + line
            self._dangling = False
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())

    def _apply(self, event: Dict[str, Any]) -> None:
        kind = event["event"]
        if kind == "start":
            if self._progress is None:
                self._progress = IngestionProgress(
                    run_id=str(event["run"]),
                    started_at=str(event["started_at"]),
                    updated_at=str(event["started_at"]),
                )
            self._progress.total = int(event["total"])
            return

        progress = self._progress
        if progress is None:
            # Events without a start line still count; the run id is unknown.
            progress = self._progress = IngestionProgress(
                run_id="unknown",
                started_at=str(event.get("at", _now())),
                updated_at=str(event.get("at", _now())),
            )

        if kind == "partition":
            progress.current_partition = str(event["partition"])
            progress.updated_at = str(event["at"])
        elif kind == "item":
            key = str(event["key"])
            outcome = ItemOutcome(event["outcome"])
            at = str(event["at"])
            previous = progress.outcomes.get(key)
            if previous is None:
                progress.processed_keys.append(key)
                progress.processed += 1
            else:
                _tally(progress, previous, -1)
            progress.outcomes[key] = outcome
            _tally(progress, outcome, 1)
            progress.current_partition = event.get("partition") or progress.current_partition
            progress.updated_at = at
        else:
            raise ValueError(f"unknown event type {kind!r}")


def _tally(progress: IngestionProgress, outcome: ItemOutcome, delta: int) -> None:
    if outcome is ItemOutcome.SUCCESS:
        progress.success += delta
    elif outcome is ItemOutcome.ERROR:
        progress.errors += delta


def _partition_of(key: str) -> str:
    try:
        card_key = CardKey.parse(key)
    except ValueError:
        return "?"
    return f"{card_key.series_code}-{card_key.language}"
