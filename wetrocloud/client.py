"""WetroCloud API client implementation."""

from typing import Any, AsyncIterator, Dict, List, Mapping, NamedTuple, Optional, Sequence, Type, Union
import logging
import json
import random
import string

from aiohttp import FormData
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .config import WetroCloudConfig
from .errors import ValidationError, derive_error_message, get_error_details, sanitize_error_message
from .models import (
    ChatHistoryMessage,
    ChatMessage,
    CategorizeResult,
    CollectionInfo,
    CreateCollectionResult,
    DataExtractionResult,
    ErrorMessage,
    GenericResponse,
    InsertResourceResult,
    QueryResult,
    ResourceType,
)
from .stream import iter_response_records
from .transport import Transport, GET, POST, DELETE


logger = logging.getLogger(__name__)

COLLECTION_ID_LENGTH = 15
COLLECTION_ID_ALPHABET = string.ascii_letters + string.digits

JSONSchema = Union[str, Mapping[str, Any], Sequence[Any]]
Messages = Sequence[Union[ChatMessage, Mapping[str, str]]]


def generate_collection_id(length: int = COLLECTION_ID_LENGTH) -> str:
    """Random alphanumeric collection identifier. Not cryptographically secure."""
    return "".join(random.choice(COLLECTION_ID_ALPHABET) for _ in range(length))


class Operation(NamedTuple):
    """How one client operation maps onto the remote API."""

    method: str
    path: str
    result: Type[BaseModel]
    # Key the success payload is wrapped under, for list responses.
    unwrap: Optional[str] = None


OPERATIONS: Dict[str, Operation] = {
    "create_collection": Operation(POST, "/collection/create/", CreateCollectionResult),
    "list_collections": Operation(GET, "/collection/all/", CollectionInfo, unwrap="results"),
    "insert_resource": Operation(POST, "/resource/insert/", InsertResourceResult),
    "query_collection": Operation(POST, "/collection/query/", QueryResult),
    "chat_with_collection": Operation(POST, "/collection/query/", QueryResult),
    "delete_resource": Operation(DELETE, "/resource/remove/", GenericResponse),
    "delete_collection": Operation(DELETE, "/collection/delete/", GenericResponse),
    "categorize_resource": Operation(POST, "/categorize/", CategorizeResult),
    "generate_text": Operation(POST, "/text-generation/", GenericResponse),
    "image_to_text": Operation(POST, "/image-to-text/", GenericResponse),
    "extract_from_website": Operation(POST, "/data-extraction/", DataExtractionResult),
}


def _require_string(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string", field=field)
    return value


def _encode_schema(json_schema: JSONSchema, field: str = "json_schema") -> str:
    """The API expects schemas as JSON text, not nested objects."""
    if isinstance(json_schema, str):
        return json_schema
    try:
        return json.dumps(json_schema)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} is not JSON serializable: {e}", field=field)


def _encode_messages(
    messages: Messages, field: str, model: Type[ChatMessage] = ChatMessage
) -> List[Dict[str, str]]:
    if isinstance(messages, (str, bytes)) or not isinstance(messages, Sequence):
        raise ValidationError(f"{field} must be a list of messages", field=field)
    try:
        return [
            model.model_validate(m.model_dump() if isinstance(m, BaseModel) else m).model_dump()
            for m in messages
        ]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {field}: {e}", field=field)


def _cast_result(model: Type[BaseModel], data: Any) -> BaseModel:
    """Wrap a 2xx body in its result model without second-guessing the server.

    Fields whose values do not have the documented type are kept as sent.
    Only a body that is not a JSON object cannot be represented.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object for {model.__name__}, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(f"{model.__name__} kept as sent: {e.error_count()} field(s) of unexpected type")
        return model.model_construct(**data)


def _resource_type(resource_type: Union[ResourceType, str]) -> str:
    if isinstance(resource_type, ResourceType):
        return resource_type.value
    return _require_string(resource_type, "type")


class WetroCloudClient:
    """Client for the WetroCloud collection, RAG and extraction API.

    Every operation returns either its result model or an ``ErrorMessage``;
    failures talking to the API are never raised. Invalid arguments raise
    ``ValidationError`` before any request is made.
    """

    def __init__(self, config: Optional[WetroCloudConfig] = None, api_key: Optional[str] = None) -> None:
        """Initialize the WetroCloud API client.

        Args:
            config: Client configuration
            api_key: API secret; builds a default configuration, or overrides
                the key of ``config`` when both are given

        Raises:
            ConfigurationError: If no usable API key was supplied
        """
        if config is None:
            config = WetroCloudConfig.build(api_key=api_key)
        elif api_key is not None:
            config = WetroCloudConfig.build(**{**config.model_dump(), "api_key": api_key})

        self.config = config
        self.transport = Transport(config.api_url, config.api_key, referrer=config.referrer)
        logger.info(f"WetroCloud client initialized for {config.api_url}")

    async def __aenter__(self) -> "WetroCloudClient":
        """Async context manager entry."""
        await self.transport.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.transport.close()

    def cancel_requests(self) -> None:
        """Abort every request currently in flight through this client."""
        self.transport.cancel()

    async def _execute(
        self,
        name: str,
        body: Optional[Union[Dict[str, Any], FormData]] = None,
        stream: bool = False
    ) -> Any:
        """Run one entry of ``OPERATIONS`` and map the outcome to a result."""
        operation = OPERATIONS[name]
        logger.debug(f"Executing {name}: {operation.method} {operation.path}")

        try:
            response_data = await self.transport.request(
                operation.path,
                operation.method,
                data=body,
                stream=stream
            )
            if stream:
                return iter_response_records(response_data)
            return self._to_result(operation, response_data)
        except Exception as e:
            message = derive_error_message(e)
            logger.error(f"{name} failed: {sanitize_error_message(message)}")
            logger.debug(f"{name} error details: {get_error_details(e)}")
            return ErrorMessage(message=message)

    @staticmethod
    def _to_result(operation: Operation, response_data: Any) -> Any:
        if operation.unwrap:
            items = response_data.get(operation.unwrap) if isinstance(response_data, dict) else None
            if not isinstance(items, list):
                raise ValueError(f"Response has no '{operation.unwrap}' list")
            return [_cast_result(operation.result, item) for item in items]
        return _cast_result(operation.result, response_data)

    async def create_collection(
        self, collection_id: Optional[str] = None
    ) -> Union[CreateCollectionResult, ErrorMessage]:
        """Create a new collection.

        Args:
            collection_id: Identifier for the collection; a random 15 character
                alphanumeric one is generated when omitted

        Returns:
            Created collection's ID and success flag, or an error message
        """
        if collection_id is None:
            collection_id = generate_collection_id()
            logger.debug(f"Generated collection id {collection_id}")
        else:
            _require_string(collection_id, "collection_id")

        return await self._execute("create_collection", {"collection_id": collection_id})

    async def list_collections(self) -> Union[List[CollectionInfo], ErrorMessage]:
        """List the collections owned by the account."""
        return await self._execute("list_collections")

    async def insert_resource(
        self,
        collection_id: str,
        resource: str,
        resource_type: Union[ResourceType, str]
    ) -> Union[InsertResourceResult, ErrorMessage]:
        """Insert a resource into an existing collection.

        Args:
            collection_id: Collection to insert into
            resource: URL, text or JSON payload, depending on ``resource_type``
            resource_type: Kind of resource (web, file, text, json, youtube)

        Returns:
            Insertion result, or an error message
        """
        body = {
            "collection_id": _require_string(collection_id, "collection_id"),
            "resource": _require_string(resource, "resource"),
            "type": _resource_type(resource_type),
        }
        return await self._execute("insert_resource", body)

    async def query_collection(
        self,
        collection_id: str,
        request_query: str,
        json_schema: Optional[JSONSchema] = None,
        json_schema_rules: Optional[str] = None,
        model: Optional[str] = None,
        stream: bool = False
    ) -> Union[QueryResult, AsyncIterator[Any], ErrorMessage]:
        """Ask a question against the resources of a collection.

        Args:
            collection_id: Collection to query
            request_query: The question
            json_schema: Shape the answer should take; sent as JSON text
            json_schema_rules: Extra instructions for filling the schema
            model: Model to answer with; the API default otherwise
            stream: Return an async iterator over the records of a streamed answer.
                Adds ``"stream": true`` to the request body, a field the
                non-streamed query does not send.

        Returns:
            Query result, an async iterator of decoded records when streaming,
            or an error message. A streamed iterator holds its connection open
            until it is exhausted or ``aclose()``d after starting; one that is
            never iterated is only released by ``cancel_requests`` or ``close``.
        """
        body: Dict[str, Any] = {
            "collection_id": _require_string(collection_id, "collection_id"),
            "request_query": _require_string(request_query, "request_query"),
        }
        if json_schema is not None:
            body["json_schema"] = _encode_schema(json_schema)
        if json_schema_rules is not None:
            body["json_schema_rules"] = json_schema_rules
        if model is not None:
            body["model"] = model
        if stream:
            body["stream"] = True

        return await self._execute("query_collection", body, stream=stream)

    async def chat_with_collection(
        self,
        collection_id: str,
        message: str,
        chat_history: Messages = ()
    ) -> Union[QueryResult, ErrorMessage]:
        """Continue a conversation grounded on a collection.

        Earlier turns in ``chat_history`` may only come from ``user`` or ``system``.
        """
        body = {
            "collection_id": _require_string(collection_id, "collection_id"),
            "message": _require_string(message, "message"),
            "chat_history": _encode_messages(chat_history, "chat_history", ChatHistoryMessage),
        }
        return await self._execute("chat_with_collection", body)

    async def delete_resource(self, collection_id: str, resource_id: str) -> Union[GenericResponse, ErrorMessage]:
        body = {
            "collection_id": _require_string(collection_id, "collection_id"),
            "resource_id": _require_string(resource_id, "resource_id"),
        }
        return await self._execute("delete_resource", body)

    async def delete_collection(self, collection_id: str) -> Union[GenericResponse, ErrorMessage]:
        body = {"collection_id": _require_string(collection_id, "collection_id")}
        return await self._execute("delete_collection", body)

    async def categorize_resource(
        self,
        resource: str,
        resource_type: Union[ResourceType, str],
        json_schema: JSONSchema,
        categories: Sequence[str],
        prompt: str
    ) -> Union[CategorizeResult, ErrorMessage]:
        """Assign a resource to one of the given categories.

        Args:
            resource: Content to categorize
            resource_type: Kind of resource
            json_schema: Shape of the answer, e.g. ``{"label": ""}``
            categories: Candidate categories
            prompt: Instructions for the categorization

        Returns:
            Categorization result, or an error message
        """
        if (
            isinstance(categories, str)
            or not isinstance(categories, Sequence)
            or not all(isinstance(c, str) for c in categories)
        ):
            raise ValidationError("categories must be a list of strings", field="categories")

        body = {
            "resource": _require_string(resource, "resource"),
            "type": _resource_type(resource_type),
            "json_schema": _encode_schema(json_schema),
            "categories": list(categories),
            "prompt": _require_string(prompt, "prompt"),
        }
        return await self._execute("categorize_resource", body)

    async def generate_text(self, messages: Messages, model: str) -> Union[GenericResponse, ErrorMessage]:
        """Generate text from a conversation without retrieval."""
        body = {
            "model": _require_string(model, "model"),
            "messages": _encode_messages(messages, "messages"),
        }
        return await self._execute("generate_text", body)

    async def image_to_text(self, image_url: str, request_query: str) -> Union[GenericResponse, ErrorMessage]:
        """Answer a question about an image (OCR and description)."""
        body = {
            "image_url": _require_string(image_url, "image_url"),
            "request_query": _require_string(request_query, "request_query"),
        }
        return await self._execute("image_to_text", body)

    async def extract_from_website(
        self, website: str, json_schema: JSONSchema
    ) -> Union[DataExtractionResult, ErrorMessage]:
        """Extract structured data from a web page.

        Sent as a multipart form, unlike the other operations.

        Args:
            website: URL of the page
            json_schema: Shape of the data to extract

        Returns:
            Extracted data, or an error message
        """
        form = FormData()
        # An explicit part content type makes aiohttp send multipart/form-data.
        form.add_field("website", _require_string(website, "website"), content_type="text/plain")
        form.add_field("json_schema", _encode_schema(json_schema), content_type="text/plain")
        return await self._execute("extract_from_website", form)
