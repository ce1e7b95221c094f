"""
DuplicateDetector -- has this order already been withheld under a setting?

A record counts when it is processed, flagged as simulation and completed
or closed.  Drafts written by a previous evaluation do not block a new one.
"""

from __future__ import annotations

from uuid import UUID

from withholding_kernel.logging_config import get_logger
from withholding_modules.ledger.models import DocumentStatus
from withholding_modules.withholding.repository import WithholdingRepository

logger = get_logger("modules.withholding.duplicates")

QUALIFYING_STATUSES = (DocumentStatus.COMPLETED, DocumentStatus.CLOSED)


class DuplicateDetector:
    """Finds qualifying withholding records for an order, definition and setting."""

    def __init__(self, repository: WithholdingRepository):
        self._repository = repository

    def exists(self, document_id: UUID, definition_id: UUID, setting_id: UUID) -> bool:
        found = self._repository.record_exists(
            source_order_id=document_id,
            definition_id=definition_id,
            setting_id=setting_id,
            doc_statuses=[s.value for s in QUALIFYING_STATUSES],
            processed=True,
            is_simulation=True,
        )
        if found:
            logger.info(
                "withholding_duplicate_detected",
                extra={
                    "document_id": str(document_id),
                    "definition_id": str(definition_id),
                    "setting_id": str(setting_id),
                },
            )
        return found
