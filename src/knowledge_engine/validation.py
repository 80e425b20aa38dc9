"""Batch validation of knowledge items.

Problems are reported per item; a bad item never fails the batch.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .items import KnowledgeItem, utc_now

logger = logging.getLogger(__name__)

# Tolerance for clock skew between the producer of a timestamp and this host
FUTURE_TOLERANCE = timedelta(minutes=5)


class ItemValidationError(BaseModel):
    """All problems found for one item."""

    item_id: str
    errors: list[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    valid_items: list[KnowledgeItem] = Field(default_factory=list)
    errors: list[ItemValidationError] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_item(item: KnowledgeItem, now: Optional[datetime] = None) -> list[str]:
    """Return the problems found in an item (empty when valid)."""
    errors = []

    if not item.id or not item.id.strip():
        errors.append("id is required")
    if not item.title or not item.title.strip():
        errors.append("title is required")
    if not item.content or not item.content.strip():
        errors.append("content is required")
    if not 0.0 <= item.relevance_score <= 1.0:
        errors.append(f"relevance_score {item.relevance_score} is outside [0, 1]")

    now = now or utc_now()
    last_updated = item.last_updated
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    if last_updated > now + FUTURE_TOLERANCE:
        errors.append(f"last_updated {item.last_updated.isoformat()} is in the future")

    return errors


def _record_id(record: Union[KnowledgeItem, dict[str, Any]], position: int) -> str:
    if isinstance(record, KnowledgeItem):
        return record.id or f"<item {position}>"
    return str(record.get("id") or f"<item {position}>")


def validate_items(
    records: list[Union[KnowledgeItem, dict[str, Any]]],
    now: Optional[datetime] = None,
) -> ValidationReport:
    """Validate a batch of items or raw item dictionaries.

    Args:
        records: Items, or dictionaries to be parsed into items
        now: Reference time for the future-date check

    Returns:
        Report with the valid items and ``{item_id, errors}`` for the rest
    """
    report = ValidationReport()

    for position, record in enumerate(records):
        record_id = _record_id(record, position)

        if isinstance(record, KnowledgeItem):
            item = record
        else:
            try:
                item = KnowledgeItem.model_validate(record)
            except ValidationError as e:
                messages = [
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                ]
                report.errors.append(ItemValidationError(item_id=record_id, errors=messages))
                continue

        errors = validate_item(item, now)
        if errors:
            report.errors.append(ItemValidationError(item_id=record_id, errors=errors))
        else:
            report.valid_items.append(item)

    if report.errors:
        logger.warning(f"{len(report.errors)} of {len(records)} knowledge items failed validation")
    return report
