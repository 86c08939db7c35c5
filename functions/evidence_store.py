"""SQLite-backed storage for evidence files attached to evaluations.

Schema:
  evidence_files — one row per uploaded file; original_name is the
                   sanitized display name, file_name the path relative to
                   {uploads_dir}/evidence

Files live on disk under:
  {uploads_dir}/evidence/{period}/{worker}/v{version}/{competency}/{conduct}/
"""

import logging
import os
import sqlite3
import unicodedata
from datetime import datetime

from config import get_config
from mojibake import repair_mojibake
from sanitizer import (
    sanitize_for_filesystem,
    slugify_worker_name,
    storage_file_name,
    unique_file_name,
)

logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "text/plain",
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS evidence_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    evaluation_id INTEGER NOT NULL,
    competency_id TEXT NOT NULL,
    conduct_id TEXT NOT NULL,
    original_name TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_type TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    uploaded_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


class UploadError(Exception):
    pass


def _path_component(value) -> str:
    """One directory level: no separators, never empty, "." or ".."."""
    part = storage_file_name(str(value or ""))
    if not part.strip("."):
        return "unknown"
    return part


class EvidenceStore:
    def __init__(self, conn: sqlite3.Connection | None = None, uploads_dir: str | None = None):
        self.cfg = get_config()
        self.conn = conn or sqlite3.connect(self.cfg.db_path)
        self.conn.row_factory = sqlite3.Row
        self.uploads_dir = uploads_dir or self.cfg.uploads_dir

    @property
    def evidence_root(self) -> str:
        return os.path.join(self.uploads_dir, "evidence")

    def ensure_schema(self):
        with self.conn:
            self.conn.execute(_SCHEMA)

    def close(self):
        self.conn.close()

    # --- Uploads ---

    def save_upload(
        self,
        evaluation_id: int,
        competency_id: str,
        conduct_id: str,
        original_name: str,
        content: bytes,
        file_type: str,
        worker_name: str | None = None,
        period: str | None = None,
        version: int = 1,
    ) -> dict:
        """Write an uploaded file to disk and record it.

        The display name is sanitized before it is stored. Period, competency
        and conduct become single directory levels under the evidence root.
        If the write or the insert fails, any file written is removed again.
        """
        if file_type not in ALLOWED_FILE_TYPES:
            raise UploadError(f"File type not allowed: {file_type}")
        if len(content) > self.cfg.max_upload_bytes:
            raise UploadError(
                f"File too large: {len(content)} bytes (max {self.cfg.max_upload_size_mb}MB)"
            )

        display_name = sanitize_for_filesystem(original_name)
        if not display_name:
            raise UploadError(f"Invalid file name: {original_name!r}")
        display_name = unicodedata.normalize("NFC", display_name)

        rel_dir = os.path.join(
            _path_component(period),
            slugify_worker_name(worker_name),
            _path_component(f"v{version or 1}"),
            _path_component(competency_id),
            _path_component(conduct_id),
        )
        abs_dir = os.path.join(self.evidence_root, rel_dir)
        root = os.path.realpath(self.evidence_root)
        if not os.path.realpath(abs_dir).startswith(root + os.sep):
            raise UploadError(f"Upload directory escapes evidence root: {rel_dir!r}")
        os.makedirs(abs_dir, exist_ok=True)

        disk_name = unique_file_name(
            storage_file_name(display_name),
            lambda candidate: os.path.exists(os.path.join(abs_dir, candidate)),
        )
        abs_path = os.path.join(abs_dir, disk_name)
        rel_path = os.path.join(rel_dir, disk_name)

        uploaded_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            with open(abs_path, "wb") as f:
                f.write(content)
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO evidence_files "
                    "(evaluation_id, competency_id, conduct_id, original_name, file_name, file_type, file_size, uploaded_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        evaluation_id,
                        competency_id,
                        conduct_id,
                        display_name,
                        rel_path,
                        file_type,
                        len(content),
                        uploaded_at,
                    ),
                )
        except (OSError, sqlite3.Error):
            logger.error(f"Storing {rel_path} failed, removing file from disk")
            if os.path.exists(abs_path):
                os.remove(abs_path)
            raise

        logger.info(f"Stored evidence {display_name!r} as {rel_path} (evaluation {evaluation_id})")
        return self.get_file(cursor.lastrowid)

    # --- Queries ---

    def get_file(self, file_id: int) -> dict | None:
        row = self.conn.execute("SELECT * FROM evidence_files WHERE id = ?", (file_id,)).fetchone()
        return dict(row) if row else None

    def list_files(
        self,
        evaluation_id: int,
        competency_id: str | None = None,
        conduct_id: str | None = None,
    ) -> list[dict]:
        """Return an evaluation's files, newest first, with repaired display names."""
        query = "SELECT * FROM evidence_files WHERE evaluation_id = ?"
        params: list = [evaluation_id]
        if competency_id:
            query += " AND competency_id = ?"
            params.append(competency_id)
        if conduct_id:
            query += " AND conduct_id = ?"
            params.append(conduct_id)
        query += " ORDER BY uploaded_at DESC, id DESC"

        return [
            {
                "id": str(row["id"]),
                "name": repair_mojibake(row["original_name"], log=logger),
                "type": row["file_type"],
                "size": row["file_size"],
                "file_name": row["file_name"],
            }
            for row in self.conn.execute(query, params)
        ]

    def get_all_names(self) -> list[tuple[int, str]]:
        """Return (id, original_name) for every stored file."""
        rows = self.conn.execute("SELECT id, original_name FROM evidence_files ORDER BY id").fetchall()
        return [(row["id"], row["original_name"]) for row in rows]

    def update_original_name(self, file_id: int, name: str) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE evidence_files SET original_name = ? WHERE id = ?", (name, file_id)
            )
        return cursor.rowcount > 0
