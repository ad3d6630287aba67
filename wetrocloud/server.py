"""MCP server exposing WetroCloud operations as tools."""

from typing import Any, Dict, List, NamedTuple, Sequence, Tuple
import json
import logging

from mcp.server import Server
from mcp.types import Tool, TextContent
from mcp.server.models import InitializationOptions
from pydantic import BaseModel

from . import __version__
from .config import WetroCloudConfig
from .client import WetroCloudClient
from .errors import ConfigurationError, ValidationError, sanitize_error_message
from .models import ErrorMessage


logger = logging.getLogger(__name__)

SERVER_NAME = "wetrocloud-mcp-server"

_STRING = {"type": "string"}
_SCHEMA = {
    "type": ["object", "array", "string"],
    "description": "JSON schema describing the shape of the answer",
}


def _messages(*roles: str) -> Dict[str, Any]:
    return {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "role": {"type": "string", "enum": list(roles)},
                "content": {"type": "string"},
            },
            "required": ["role", "content"],
        },
    }


class ToolSpec(NamedTuple):
    """An MCP tool backed by one client method."""

    method: str
    description: str
    properties: Dict[str, Dict[str, Any]]
    required: Tuple[str, ...] = ()


TOOLS: Dict[str, ToolSpec] = {
    "wetrocloud_create_collection": ToolSpec(
        "create_collection",
        "Create a collection; an ID is generated when none is given",
        {"collection_id": {**_STRING, "description": "ID for the new collection"}},
    ),
    "wetrocloud_list_collections": ToolSpec(
        "list_collections",
        "List all collections",
        {},
    ),
    "wetrocloud_insert_resource": ToolSpec(
        "insert_resource",
        "Insert a web page, file, text, JSON or YouTube resource into a collection",
        {
            "collection_id": _STRING,
            "resource": {**_STRING, "description": "URL or content of the resource"},
            "resource_type": {"type": "string", "enum": ["web", "file", "text", "json", "youtube"]},
        },
        ("collection_id", "resource", "resource_type"),
    ),
    "wetrocloud_query_collection": ToolSpec(
        "query_collection",
        "Ask a question answered from the resources of a collection",
        {
            "collection_id": _STRING,
            "request_query": {**_STRING, "description": "The question"},
            "json_schema": _SCHEMA,
            "json_schema_rules": {**_STRING, "description": "Rules for filling the schema"},
            "model": {**_STRING, "description": "Model to answer with"},
        },
        ("collection_id", "request_query"),
    ),
    "wetrocloud_chat_with_collection": ToolSpec(
        "chat_with_collection",
        "Continue a conversation grounded on a collection",
        {"collection_id": _STRING, "message": _STRING, "chat_history": _messages("user", "system")},
        ("collection_id", "message"),
    ),
    "wetrocloud_delete_resource": ToolSpec(
        "delete_resource",
        "Remove a resource from a collection",
        {"collection_id": _STRING, "resource_id": _STRING},
        ("collection_id", "resource_id"),
    ),
    "wetrocloud_delete_collection": ToolSpec(
        "delete_collection",
        "Delete a collection",
        {"collection_id": _STRING},
        ("collection_id",),
    ),
    "wetrocloud_categorize_resource": ToolSpec(
        "categorize_resource",
        "Assign a resource to one of the given categories",
        {
            "resource": _STRING,
            "resource_type": {"type": "string", "enum": ["web", "file", "text", "json", "youtube"]},
            "json_schema": _SCHEMA,
            "categories": {"type": "array", "items": _STRING},
            "prompt": _STRING,
        },
        ("resource", "resource_type", "json_schema", "categories", "prompt"),
    ),
    "wetrocloud_generate_text": ToolSpec(
        "generate_text",
        "Generate text from a conversation without retrieval",
        {"messages": _messages("user", "system", "assistant"), "model": _STRING},
        ("messages", "model"),
    ),
    "wetrocloud_image_to_text": ToolSpec(
        "image_to_text",
        "Read text from or answer a question about an image",
        {"image_url": _STRING, "request_query": _STRING},
        ("image_url", "request_query"),
    ),
    "wetrocloud_extract_from_website": ToolSpec(
        "extract_from_website",
        "Extract structured data from a web page",
        {"website": {**_STRING, "description": "URL of the page"}, "json_schema": _SCHEMA},
        ("website", "json_schema"),
    ),
}


def render_result(result: Any) -> str:
    """Text shown to the MCP client for an operation result."""
    if isinstance(result, ErrorMessage):
        return f"Error: {sanitize_error_message(result.message)}"
    if isinstance(result, list):
        return json.dumps([item.model_dump(mode="json") for item in result], indent=2)
    if isinstance(result, BaseModel):
        return result.model_dump_json(indent=2)
    return json.dumps(result, indent=2)


class WetroCloudMCPServer:
    """MCP server serving WetroCloud operations over stdio."""

    def __init__(self, config: WetroCloudConfig) -> None:
        self.config = config
        self.client = WetroCloudClient(config)
        self.server = Server(SERVER_NAME)
        self._setup_handlers()
        logger.info("WetroCloud MCP Server initialized")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit with cleanup."""
        await self.client.close()

    def _setup_handlers(self) -> None:
        """Set up MCP server handlers."""
        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            logger.debug("Handling list_tools request")
            return await self._list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> Sequence[TextContent]:
            logger.debug(f"Handling call_tool request: {name}")
            return await self._call_tool(name, arguments or {})

    async def run(self) -> None:
        """Validate the connection, then serve over stdio until the client disconnects."""
        logger.info("WetroCloud MCP Server starting...")
        try:
            await self._validate_config()

            from mcp.server.stdio import stdio_server
            from mcp.server.lowlevel.server import NotificationOptions

            async with stdio_server() as streams:
                logger.debug("stdio server started, running MCP server...")
                await self.server.run(
                    *streams,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=__version__,
                        capabilities=self.server.get_capabilities(
                            NotificationOptions(),
                            {}
                        )
                    )
                )
        finally:
            await self.client.close()

    async def _validate_config(self) -> None:
        """Check the API key against the API by listing collections."""
        result = await self.client.list_collections()
        if isinstance(result, ErrorMessage):
            logger.error(f"Failed to validate WetroCloud connection: {result.message}")
            raise ConfigurationError(f"Cannot connect to WetroCloud API: {result.message}")
        logger.info("Successfully validated WetroCloud connection")

    async def _list_tools(self) -> List[Tool]:
        return [
            Tool(
                name=name,
                description=spec.description,
                inputSchema={
                    "type": "object",
                    "properties": spec.properties,
                    "required": list(spec.required),
                }
            )
            for name, spec in TOOLS.items()
        ]

    async def _call_tool(self, name: str, arguments: Dict[str, Any]) -> Sequence[TextContent]:
        """Call a specific tool with given arguments.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Tool execution result
        """
        logger.info(f"Calling tool: {name} with arguments keys: {list(arguments.keys())}")

        try:
            spec = TOOLS.get(name)
            if spec is None:
                raise ValidationError(f"Unknown tool: {name}", field="tool_name")

            for key in spec.required:
                if key not in arguments:
                    raise ValidationError(f"{key} parameter is required", field=key)

            kwargs = {key: value for key, value in arguments.items() if key in spec.properties}
            result = await getattr(self.client, spec.method)(**kwargs)
            return [TextContent(type="text", text=render_result(result))]

        except ValidationError as e:
            logger.error(f"Invalid arguments for tool {name}: {e}")
            return [TextContent(type="text", text=f"Error: {sanitize_error_message(str(e))}")]
        except Exception as e:
            logger.error(f"Unexpected error executing tool {name}: {e}", exc_info=True)
            error_msg = f"An unexpected error occurred while executing {name}. Please try again."
            return [TextContent(type="text", text=error_msg)]
