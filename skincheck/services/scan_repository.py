"""
In-memory store for completed scan records.

Backs the scans API. Records are kept for the lifetime of the process.
"""

from skincheck.config.logging_config import get_logger
from skincheck.models.models import ScanRecord

logger = get_logger(__name__)


class ScanRepository:
    """Key-value store of ScanRecord by ID."""

    def __init__(self) -> None:
        self._records: dict[str, ScanRecord] = {}

    def create(self, record: ScanRecord) -> ScanRecord:
        """
        Store a record.

        Raises:
            ValueError: If a record with the same ID already exists.
        """
        if record.id in self._records:
            raise ValueError(f"Scan already exists: {record.id}")
        self._records[record.id] = record
        logger.info("Scan saved", scan_id=record.id, status_label=record.status_label)
        return record

    def get(self, scan_id: str) -> ScanRecord | None:
        return self._records.get(scan_id)

    def list_all(self) -> list[ScanRecord]:
        """All records, newest first."""
        return sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)

    def __len__(self) -> int:
        return len(self._records)


# Singleton instance for dependency injection
_scan_repository: ScanRepository | None = None


def get_scan_repository() -> ScanRepository:
    """
    Get the scan repository singleton.

    Returns:
        The shared ScanRepository instance.
    """
    global _scan_repository
    if _scan_repository is None:
        _scan_repository = ScanRepository()
    return _scan_repository
