"""Batch repair of corrupted evidence names already in the database."""

import logging
import sqlite3
from dataclasses import dataclass, field

from evidence_store import EvidenceStore
from mojibake import repair_mojibake

logger = logging.getLogger(__name__)


@dataclass
class RepairSummary:
    total: int = 0
    corrected: int = 0
    unchanged: int = 0
    failed: int = 0
    changes: list[tuple[int, str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "corrected": self.corrected,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "changes": [
                {"id": file_id, "before": before, "after": after}
                for file_id, before, after in self.changes
            ],
        }


def repair_stored_names(
    store: EvidenceStore,
    dry_run: bool = False,
    log: logging.Logger | None = None,
) -> RepairSummary:
    """Run repair_mojibake over every stored original_name and write back changes.

    A failed update is counted and logged; the remaining rows are still
    processed. With dry_run nothing is written, and every name that would
    change is reported as corrected.
    """
    log = log or logger
    summary = RepairSummary()

    names = store.get_all_names()
    summary.total = len(names)
    log.info(f"Checking {summary.total} stored file names{' (dry run)' if dry_run else ''}")

    for file_id, before in names:
        after = repair_mojibake(before, log=log)
        if after == before:
            summary.unchanged += 1
            continue

        log.info(f"File {file_id}: {before!r} -> {after!r}")
        if not dry_run:
            try:
                updated = store.update_original_name(file_id, after)
            except sqlite3.Error:
                log.exception(f"Failed to update file {file_id}")
                summary.failed += 1
                continue
            if not updated:
                log.warning(f"File {file_id} disappeared before it could be updated")
                summary.failed += 1
                continue

        summary.corrected += 1
        summary.changes.append((file_id, before, after))

    log.info(
        f"Name repair complete: {summary.corrected} corrected, "
        f"{summary.unchanged} unchanged, {summary.failed} failed"
    )
    return summary
