"""Pydantic models for document store payloads."""

from pydantic import BaseModel, ConfigDict, Field

from macro_ledger.domain.values import decode_fields


class Document(BaseModel):
    """A document as returned by the store."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    fields: dict[str, dict[str, object]] | None = None
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")

    @property
    def document_id(self) -> str:
        """Last segment of the document path."""
        return self.name.rsplit("/", 1)[-1]

    def decoded_fields(self) -> dict[str, object]:
        """Return the document fields as native values."""
        return decode_fields(self.fields)

    def to_record(self) -> dict[str, object]:
        """Return decoded fields plus ``_id`` and ``_path`` bookkeeping keys."""
        record: dict[str, object] = {"_id": self.document_id, "_path": self.name}
        record.update(self.decoded_fields())
        return record


class ListDocumentsPage(BaseModel):
    """One page of a collection listing."""

    documents: list[Document] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class CollectionIdsPage(BaseModel):
    """One page of a ``listCollectionIds`` call."""

    collection_ids: list[str] = Field(default_factory=list, alias="collectionIds")
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class QueryResultRow(BaseModel):
    """One row of a ``runQuery`` response stream."""

    document: Document | None = None
    read_time: str | None = Field(default=None, alias="readTime")
