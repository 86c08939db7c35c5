"""Tests for functions/name_fixer.py.

Runs against a real in-memory EvidenceStore; failure paths use a mocked store.
"""

import logging
import sqlite3
from unittest.mock import MagicMock

import pytest

from config import reset_config


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _set_env(monkeypatch):
    """Provide required environment variables for Config."""
    monkeypatch.setenv("EVALUATIONS_DB_PATH", ":memory:")
    reset_config()


@pytest.fixture
def store(tmp_path):
    from evidence_store import EvidenceStore

    s = EvidenceStore(conn=sqlite3.connect(":memory:"), uploads_dir=str(tmp_path))
    s.ensure_schema()
    for name in ["corazoÌn.pdf", "documento.pdf", "seÌ~orÌ~a.docx", "café.png"]:
        with s.conn:
            s.conn.execute(
                "INSERT INTO evidence_files "
                "(evaluation_id, competency_id, conduct_id, original_name, file_name, file_type, file_size) "
                "VALUES (1, 'C1', 'C1.1', ?, ?, 'application/pdf', 1)",
                (name, name),
            )
    yield s
    s.close()


def _names(store):
    return [name for _, name in store.get_all_names()]


# ---------------------------------------------------------------------------
# repair_stored_names
# ---------------------------------------------------------------------------


class TestRepairStoredNames:
    def test_repairs_corrupted_rows(self, store):
        from name_fixer import repair_stored_names

        summary = repair_stored_names(store)

        assert summary.total == 4
        assert summary.corrected == 2
        assert summary.unchanged == 2
        assert summary.failed == 0
        assert _names(store) == ["corazón.pdf", "documento.pdf", "señora.docx", "café.png"]

    def test_reports_changes(self, store):
        from name_fixer import repair_stored_names

        summary = repair_stored_names(store)

        assert [(before, after) for _, before, after in summary.changes] == [
            ("corazoÌn.pdf", "corazón.pdf"),
            ("seÌ~orÌ~a.docx", "señora.docx"),
        ]

    def test_dry_run_does_not_write(self, store):
        from name_fixer import repair_stored_names

        summary = repair_stored_names(store, dry_run=True)

        assert summary.corrected == 2
        assert _names(store) == ["corazoÌn.pdf", "documento.pdf", "seÌ~orÌ~a.docx", "café.png"]

    def test_second_run_corrects_nothing(self, store):
        from name_fixer import repair_stored_names

        repair_stored_names(store)
        summary = repair_stored_names(store)

        assert summary.corrected == 0
        assert summary.unchanged == 4

    def test_logs_to_injected_logger(self, store):
        from name_fixer import repair_stored_names

        log = MagicMock(spec=logging.Logger)
        repair_stored_names(store, log=log)

        messages = [c.args[0] for c in log.info.call_args_list]
        assert any("corazón.pdf" in m for m in messages)
        assert "Name repair complete" in messages[-1]

    def test_to_dict(self, store):
        from name_fixer import repair_stored_names

        result = repair_stored_names(store).to_dict()

        assert result["corrected"] == 2
        assert result["changes"][0]["before"] == "corazoÌn.pdf"
        assert result["changes"][0]["after"] == "corazón.pdf"


class TestRepairFailures:
    """A failing row is counted and the rest are still processed."""

    def _mock_store(self):
        store = MagicMock()
        store.get_all_names.return_value = [(1, "corazoÌn.pdf"), (2, "aÌrbol.doc")]
        return store

    def test_database_error_counts_as_failed(self):
        from name_fixer import repair_stored_names

        store = self._mock_store()
        store.update_original_name.side_effect = [sqlite3.OperationalError("locked"), True]

        summary = repair_stored_names(store)

        assert summary.failed == 1
        assert summary.corrected == 1
        assert summary.changes == [(2, "aÌrbol.doc", "árbol.doc")]

    def test_missing_row_counts_as_failed(self):
        from name_fixer import repair_stored_names

        store = self._mock_store()
        store.update_original_name.side_effect = [False, True]

        summary = repair_stored_names(store)

        assert summary.failed == 1
        assert summary.corrected == 1

    def test_empty_table(self):
        from name_fixer import repair_stored_names

        store = MagicMock()
        store.get_all_names.return_value = []

        summary = repair_stored_names(store)

        assert summary.total == 0
        assert summary.changes == []
        store.update_original_name.assert_not_called()
