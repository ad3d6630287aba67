"""Data models for the WetroCloud client."""

from enum import Enum
from typing import Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field


class ResourceType(str, Enum):
    """Kinds of resource the API can ingest or categorize."""

    WEB = "web"
    FILE = "file"
    TEXT = "text"
    JSON = "json"
    YOUTUBE = "youtube"


class ChatMessage(BaseModel):
    """One turn of a text generation prompt."""

    role: Literal["user", "system", "assistant"] = Field(..., description="Author of the message")
    content: str = Field(..., description="Message text")


class ChatHistoryMessage(ChatMessage):
    """One earlier turn of a conversation with a collection."""

    role: Literal["user", "system"] = Field(..., description="Author of the message")


class ErrorMessage(BaseModel):
    """Uniform failure value returned by every client operation."""

    message: str = Field(..., description="Human-readable error message")


class _APIResult(BaseModel):
    # Response shapes vary between API releases; keep whatever else the server sends.
    model_config = ConfigDict(extra="allow")


class CreateCollectionResult(_APIResult):
    """Result of create collection operation."""

    collection_id: Optional[str] = Field(None, description="Identifier of the created collection")
    success: Optional[bool] = Field(None, description="Whether the collection was created")


class CollectionInfo(_APIResult):
    """A collection owned by the account."""

    collection_id: Optional[str] = Field(None, description="Collection identifier")
    created_at: Optional[str] = Field(None, description="Creation timestamp as sent by the API")


class InsertResourceResult(_APIResult):
    """Result of insert resource operation."""

    resource_id: Optional[str] = Field(None, description="Identifier of the inserted resource")
    success: Optional[bool] = Field(None, description="Whether the resource was inserted")
    tokens: Any = Field(None, description="Tokens consumed while ingesting")


class QueryResult(_APIResult):
    """Result of a query or chat against a collection."""

    response: Any = Field(None, description="Answer text, or structured data when a schema was given")
    tokens: Any = Field(None, description="Tokens consumed")
    success: Optional[bool] = Field(None, description="Whether the query succeeded")


class CategorizeResult(QueryResult):
    """Result of categorize resource operation."""


class GenericResponse(_APIResult):
    """Result of deletes, text generation and image-to-text."""

    response: Any = Field(None, description="Generated text, when the operation produces any")
    message: Optional[str] = Field(None, description="Status message from the API")
    success: Optional[bool] = Field(None, description="Whether the operation succeeded")


class DataExtractionResult(_APIResult):
    """Result of extract from website operation."""

    response: Any = Field(None, description="Data extracted according to the JSON schema")
    tokens: Any = Field(None, description="Tokens consumed")
    success: Optional[bool] = Field(None, description="Whether the extraction succeeded")
