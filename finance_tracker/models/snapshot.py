"""
Change Notification Models

What a change-notification source delivers to its listener: either a
full snapshot of the collection, or an error notification. Errors are a
distinct notification variant, never an exception unwinding the stream.
"""

from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.errors import TransportError


class Document(BaseModel):
    """One stored document: its id plus the raw stored fields."""
    model_config = ConfigDict(frozen=True)

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class Snapshot(BaseModel):
    """
    A complete, point-in-time listing of a collection for one user.

    A snapshot replaces the previous one; it is never merged with it.
    Documents are kept in the order the source delivered them.
    """
    model_config = ConfigDict(frozen=True)

    collection: str
    documents: tuple[Document, ...] = ()
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def of(cls, collection: str, documents) -> "Snapshot":
        """Build a snapshot from (id, fields) pairs or Document objects."""
        docs = []
        for doc in documents:
            if isinstance(doc, Document):
                docs.append(doc)
            else:
                doc_id, data = doc
                docs.append(Document(id=doc_id, data=dict(data)))
        return cls(collection=collection, documents=tuple(docs))

    @property
    def ids(self) -> list[str]:
        return [doc.id for doc in self.documents]

    def __len__(self) -> int:
        return len(self.documents)


class SnapshotError(BaseModel):
    """A failed snapshot delivery."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    collection: str
    error: TransportError
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


Notification = Union[Snapshot, SnapshotError]
