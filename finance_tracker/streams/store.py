"""
Record Store

In-memory holder of the latest snapshot of one collection.

DESIGN DECISION: Every snapshot replaces the store wholesale.
There are no partial updates and no merging, so a record missing from a
snapshot is gone from the store, and nothing ever edits a record in
place while a recomputation might be reading it.
"""

from typing import Generic, Iterator, TypeVar

import structlog
from pydantic import ValidationError

from finance_tracker.models.records import Record
from finance_tracker.models.snapshot import Snapshot


logger = structlog.get_logger(__name__)

R = TypeVar("R", bound=Record)


class RecordStore(Generic[R]):
    """
    Current records of one collection, in snapshot order.

    Usage:
        store = RecordStore(ExpenseRecord)
        store.apply_snapshot(snapshot)
        for expense in store.records():
            ...
    """

    def __init__(self, record_type: type[R]):
        self._record_type = record_type
        self._records: tuple[R, ...] = ()
        self._loaded = False

    @property
    def record_type(self) -> type[R]:
        return self._record_type

    @property
    def loaded(self) -> bool:
        """Has at least one snapshot been applied?"""
        return self._loaded

    def apply_snapshot(self, snapshot: Snapshot) -> tuple[R, ...]:
        """
        Replace the entire record set with the snapshot's documents.

        Malformed fields fall back to their defaults inside the record
        models. A document that still cannot become a record is skipped
        and logged; it never aborts the rest of the snapshot.
        """
        records = []
        for document in snapshot.documents:
            try:
                records.append(self._record_type.from_document(document.id, document.data))
            except ValidationError as e:
                logger.warning(
                    "record_skipped",
                    collection=snapshot.collection,
                    document_id=document.id,
                    error=str(e),
                )

        self._records = tuple(records)
        self._loaded = True
        return self._records

    def records(self) -> tuple[R, ...]:
        """The current records, in the order the snapshot listed them."""
        return self._records

    def ids(self) -> list[str]:
        return [record.id for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[R]:
        return iter(self._records)
