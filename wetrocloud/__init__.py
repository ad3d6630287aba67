"""WetroCloud - async Python client for the WetroCloud RAG API.

This package wraps the WetroCloud REST API behind typed async methods:

- Create, list and delete collections
- Insert and remove web, file, text, JSON and YouTube resources
- Query collections (optionally streamed) and chat with them
- Categorize content, generate text, read images and extract data from websites

Every operation returns its result model or an ``ErrorMessage``; API and
network failures are never raised to the caller.

Example usage:
    >>> from wetrocloud import WetroCloudClient, ErrorMessage
    >>> async with WetroCloudClient(api_key="your_api_key") as client:
    ...     result = await client.query_collection("my_collection", "What is RAG?")
    ...     if isinstance(result, ErrorMessage):
    ...         print(result.message)
    ...     else:
    ...         print(result.response)

The package also ships an MCP server exposing the same operations as tools:
    {
      "mcpServers": {
        "wetrocloud": {
          "command": "python",
          "args": ["-m", "wetrocloud"],
          "env": {"WETROCLOUD_API_KEY": "your_api_key"}
        }
      }
    }
"""

__version__ = "0.1.0"
__description__ = "Async client and MCP server for the WetroCloud API"

from .client import WetroCloudClient, generate_collection_id, OPERATIONS
from .config import WetroCloudConfig
from .transport import Transport
from .stream import iter_json_lines, iter_response_records
from .errors import (
    WetroCloudError,
    ConfigurationError,
    ValidationError,
    APIError,
    TransportError,
    RequestCancelledError,
    ResponseDecodeError,
)
from .models import (
    ResourceType,
    ChatMessage,
    ChatHistoryMessage,
    ErrorMessage,
    CreateCollectionResult,
    CollectionInfo,
    InsertResourceResult,
    QueryResult,
    CategorizeResult,
    GenericResponse,
    DataExtractionResult,
)


def __getattr__(name):
    # The MCP server pulls in the mcp SDK; plain client use does not need it.
    if name == "WetroCloudMCPServer":
        from .server import WetroCloudMCPServer
        return WetroCloudMCPServer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Core classes
    "WetroCloudClient",
    "WetroCloudConfig",
    "WetroCloudMCPServer",
    "Transport",
    "OPERATIONS",
    "generate_collection_id",
    "iter_json_lines",
    "iter_response_records",

    # Exceptions
    "WetroCloudError",
    "ConfigurationError",
    "ValidationError",
    "APIError",
    "TransportError",
    "RequestCancelledError",
    "ResponseDecodeError",

    # Data models
    "ResourceType",
    "ChatMessage",
    "ChatHistoryMessage",
    "ErrorMessage",
    "CreateCollectionResult",
    "CollectionInfo",
    "InsertResourceResult",
    "QueryResult",
    "CategorizeResult",
    "GenericResponse",
    "DataExtractionResult",
]
