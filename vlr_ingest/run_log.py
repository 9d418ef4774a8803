"""
run_log.py — Append-only ledger of ingestion attempts (table `ingestion_log`).

One row per feed invocation / match page, success or failure. Rows are never
updated after they are written.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from vlr_ingest.storage import Storage, StorageError

logger = logging.getLogger(__name__)

SOURCE_API = "vlrggapi"
SOURCE_SCRAPE = "vlr_scrape"

SUCCESS = "success"
PARTIAL = "partial"
ERROR = "error"


class RunLedger:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def append(
        self,
        source: str,
        endpoint: str,
        status: str,
        record_count: int,
        error: Optional[str] = None,
        metadata: Optional[dict] = None,
        started_at: Optional[datetime] = None,
    ) -> None:
        """Writes one ledger row. Fire-and-forget: failures are logged, not raised."""
        now = datetime.now(timezone.utc)
        try:
            self._storage.insert(
                "ingestion_log",
                {
                    "source": source,
                    "endpoint": endpoint,
                    "status": status,
                    "records_processed": record_count,
                    "error_message": error,
                    "metadata": metadata,
                    "started_at": started_at or now,
                    "completed_at": now,
                },
            )
        except StorageError as exc:
            logger.error(
                "[ledger] failed to record %s %s (%s, %d records): %s",
                source, endpoint, status, record_count, exc,
            )
            return

        log = logger.info if status == SUCCESS else logger.warning
        log(
            "[ledger] %s %s -> %s (%d records)%s",
            source, endpoint, status, record_count,
            f": {error}" if error else "",
        )

    def recent(self, limit: int = 20) -> list[dict]:
        """Most recent ledger rows, newest first."""
        return self._storage.select(
            "ingestion_log", order_by="id", descending=True, limit=limit,
        )
