"""Cloud Function entry point for evidence filename maintenance.

  repair_names — repair corrupted evidence names stored in the database
                 GET  = dry run, reports what would change
                 POST = apply the repair
"""

import hmac
import json
import logging

import functions_framework
from flask import Request

from config import get_config
from evidence_store import EvidenceStore
from name_fixer import repair_stored_names

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _is_authorized(request: Request, secret: str) -> bool:
    """Check the trigger secret header. No configured secret means open."""
    if not secret:
        return True
    provided = request.headers.get("X-Repair-Trigger-Secret", "")
    return hmac.compare_digest(provided, secret)


@functions_framework.http
def repair_names(request: Request):
    """Repair mis-encoded evidence file names.

    GET runs a dry run; POST writes the repaired names back.
    """
    try:
        cfg = get_config()
        logging.getLogger().setLevel(cfg.log_level)

        dry_run = request.method == "GET"
        if not dry_run and not _is_authorized(request, cfg.repair_trigger_secret):
            logger.warning("Rejected repair request with missing or invalid trigger secret")
            return "Forbidden", 403

        store = EvidenceStore()
        try:
            store.ensure_schema()
            summary = repair_stored_names(store, dry_run=dry_run)
        finally:
            store.close()

        result = {"status": "dry_run" if dry_run else "repaired", **summary.to_dict()}
        return json.dumps(result, ensure_ascii=False), 200, {"Content-Type": "application/json"}

    except Exception:
        logger.exception("Repair names failed")
        return "Internal error", 500
