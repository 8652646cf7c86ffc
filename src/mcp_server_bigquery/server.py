"""
MCP BigQuery Server - exposes a BigQuery project to MCP clients over stdio.

Datasets are served as resources, read-only SQL and table listing as tools,
and (in the extended variant) a static report prompt.
"""
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from google.auth.exceptions import GoogleAuthError
from mcp import types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mcp_server_bigquery.config import ServerConfig, parse_args, validate_config
from mcp_server_bigquery.errors import (
    ConfigError,
    InvalidArgument,
    InvalidResourceUri,
    MissingArgument,
    UnknownOperation,
)
from mcp_server_bigquery.prompts import (
    DEFAULT_MILESTONE,
    GITLAB_REPORT_PROMPT,
    PROMPTS,
    render_gitlab_report,
)
from mcp_server_bigquery.utils import Rejected, qualify
from mcp_server_bigquery.warehouse import DEFAULT_MAXIMUM_BYTES_BILLED, BigQueryWarehouse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("mcp-server-bigquery")

SERVER_NAME = "mcp-server/bigquery"
SERVER_VERSION = "0.1.0"
SCHEMA_PATH = "schema"
JSON_MIME_TYPE = "application/json"


class QueryRequest(BaseModel):
    """Arguments of the ``query`` tool."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sql: str
    maximum_bytes_billed: str = Field(
        default=DEFAULT_MAXIMUM_BYTES_BILLED, alias="maximumBytesBilled"
    )
    dataset_id: Optional[str] = Field(default=None, alias="datasetId")

    @field_validator("maximum_bytes_billed", mode="before")
    @classmethod
    def _default_bytes_billed(cls, value):
        if value is None or value == "":
            return DEFAULT_MAXIMUM_BYTES_BILLED
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("maximum_bytes_billed")
    @classmethod
    def _check_bytes_billed(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError("maximumBytesBilled must be a whole number of bytes")
        return value


class BigQueryMCPServer:
    """MCP server implementation for Google BigQuery."""

    def __init__(self, config: ServerConfig, warehouse: BigQueryWarehouse):
        """Initialize the BigQuery MCP server.

        Args:
            config: Validated server configuration.
            warehouse: BigQuery adapter bound to ``config.identity``.
        """
        self.config = config
        self.warehouse = warehouse
        self.resource_base_url = f"bigquery://{config.project_id}"
        self.mcp_server = self._create_mcp_server()

    @asynccontextmanager
    async def _server_lifespan(self, server: Server):
        """Server lifespan context manager."""
        logger.info("Starting BigQuery MCP server...")

        try:
            yield
        finally:
            logger.info("Shutting down BigQuery MCP server...")

    def _create_mcp_server(self) -> Server:
        """Register resource, tool and prompt handlers with the MCP server."""
        server = Server(
            name=SERVER_NAME,
            version=SERVER_VERSION,
            lifespan=self._server_lifespan,
        )

        @server.list_resources()
        async def handle_list_resources() -> List[types.Resource]:
            return [types.Resource(**resource) for resource in await self.list_resources()]

        @server.read_resource()
        async def handle_read_resource(uri) -> List[ReadResourceContents]:
            contents = await self.read_resource(str(uri))
            return [ReadResourceContents(content=contents["text"], mime_type=contents["mimeType"])]

        @server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return [types.Tool(**tool) for tool in self.list_tools()]

        @server.call_tool()
        async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
            result = await self.call_tool(name, arguments or {})
            return [types.TextContent(type="text", text=item["text"]) for item in result["content"]]

        if self.config.extended:

            @server.list_prompts()
            async def handle_list_prompts() -> List[types.Prompt]:
                return [types.Prompt(**prompt) for prompt in self.list_prompts()]

            @server.get_prompt()
            async def handle_get_prompt(
                name: str, arguments: Optional[Dict[str, str]]
            ) -> types.GetPromptResult:
                prompt = self.get_prompt(name, arguments)
                return types.GetPromptResult(
                    description=prompt["description"],
                    messages=[
                        types.PromptMessage(
                            role=message["role"],
                            content=types.TextContent(type="text", text=message["content"]["text"]),
                        )
                        for message in prompt["messages"]
                    ],
                )

        return server

    async def list_resources(self) -> List[Dict[str, Any]]:
        """List one schema resource per dataset in the project."""
        try:
            logger.info("Fetching datasets...")
            dataset_ids = await self.warehouse.list_datasets()
            logger.info(f"Found {len(dataset_ids)} datasets")

            table_lists = await asyncio.gather(
                *(self.warehouse.list_tables(dataset_id) for dataset_id in dataset_ids)
            )

            resources = []
            for dataset_id, tables in zip(dataset_ids, table_lists):
                logger.info(f"Found {len(tables)} tables and views in dataset {dataset_id}")
                resource = {
                    "uri": f"{self.resource_base_url}/{dataset_id}/{SCHEMA_PATH}",
                    "mimeType": JSON_MIME_TYPE,
                    "name": f"Dataset: {dataset_id} ({len(tables)} tables/views)",
                }
                if self.config.extended:
                    resource["metadata"] = {
                        "datasetId": dataset_id,
                        "projectId": self.config.project_id,
                        "resourceType": "dataset",
                    }
                resources.append(resource)

            logger.info(f"Total resources found: {len(resources)}")
            return resources
        except Exception as e:
            logger.error(f"Error listing resources: {e}")
            raise

    async def read_resource(self, uri: str) -> Dict[str, Any]:
        """Return the schema of every table in the dataset named by ``uri``."""
        path_components = urlparse(uri).path.split("/")
        schema = path_components.pop() if path_components else ""
        dataset_id = path_components.pop() if path_components else ""

        if schema != SCHEMA_PATH or not dataset_id:
            raise InvalidResourceUri(f"Invalid resource URI: {uri}")

        try:
            tables = await self.warehouse.list_tables(dataset_id)
            metadata = await asyncio.gather(
                *(self.warehouse.get_table(dataset_id, table.table_id) for table in tables)
            )
        except Exception as e:
            logger.error(f"Error reading resource {uri}: {e}")
            raise

        tables_info = []
        for table in metadata:
            full_table_id = self.warehouse.full_table_id(dataset_id, table.table_id)
            info = {
                "datasetId": dataset_id,
                "tableId": table.table_id,
                "fullTableId": full_table_id,
                "type": table.table_type,
                "schema": [field.to_api_repr() for field in table.schema],
            }
            if self.config.extended:
                info["sampleQuery"] = f"SELECT * FROM `{full_table_id}` LIMIT 10"
            tables_info.append(info)

        return {
            "uri": uri,
            "mimeType": JSON_MIME_TYPE,
            "text": json.dumps(tables_info, indent=2),
        }

    def list_tools(self) -> List[Dict[str, Any]]:
        """Describe the tools this server offers."""
        query_properties = {
            "sql": {"type": "string"},
            "maximumBytesBilled": {
                "type": "string",
                "description": "Maximum bytes billed (default: 1GB)",
            },
        }
        if self.config.extended:
            query_properties["datasetId"] = {
                "type": "string",
                "description": "Dataset ID to use if not specified in query",
            }

        return [
            {
                "name": "query",
                "description": "Run a read-only BigQuery SQL query",
                "inputSchema": {
                    "type": "object",
                    "properties": query_properties,
                    "required": ["sql"],
                },
            },
            {
                "name": "listTables",
                "description": "List all tables in a specific dataset",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "datasetId": {"type": "string"},
                    },
                    "required": ["datasetId"],
                },
            },
        ]

    def _get_tool_handler(self, tool_name: str):
        """Get the handler function for a tool."""
        handlers = {
            "query": self._handle_query,
            "listTables": self._handle_list_tables,
        }
        return handlers.get(tool_name)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Run the tool ``name`` with ``arguments``."""
        handler = self._get_tool_handler(name)
        if handler is None:
            raise UnknownOperation(f"Unknown tool: {name}")
        logger.info(f"Handling tool call: {name}")
        return await handler(arguments)

    async def _handle_query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Handle query tool."""
        if not params.get("sql"):
            raise MissingArgument("sql is required")
        try:
            request = QueryRequest.model_validate(params)
        except ValidationError as e:
            raise InvalidArgument(str(e))

        dataset_id = request.dataset_id if self.config.extended else None
        result = qualify(request.sql, self.config.project_id, dataset_id)
        if isinstance(result, Rejected):
            raise result.to_error()

        try:
            rows = await self.warehouse.query(result.sql, request.maximum_bytes_billed)
        except Exception as e:
            logger.error(f"Error executing query: {e}")
            raise

        return {
            "content": [{"type": "text", "text": json.dumps(rows, indent=2, default=str)}],
            "isError": False,
        }

    async def _handle_list_tables(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Handle listTables tool."""
        dataset_id = params.get("datasetId")
        if not dataset_id:
            raise MissingArgument("datasetId is required")

        try:
            tables = await self.warehouse.list_tables(dataset_id)
        except Exception as e:
            logger.error(f"Error listing tables: {e}")
            raise

        tables_list = [
            {
                "tableId": table.table_id,
                "fullTableId": self.warehouse.full_table_id(dataset_id, table.table_id),
            }
            for table in tables
        ]
        return {
            "content": [{"type": "text", "text": json.dumps(tables_list, indent=2)}],
            "isError": False,
        }

    def list_prompts(self) -> List[Dict[str, Any]]:
        return list(PROMPTS) if self.config.extended else []

    def get_prompt(self, name: str, arguments: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if not self.config.extended or name != GITLAB_REPORT_PROMPT["name"]:
            raise UnknownOperation(f"Unknown prompt: {name}")

        milestone = (arguments or {}).get("milestone") or DEFAULT_MILESTONE

        return {
            "description": GITLAB_REPORT_PROMPT["description"],
            "messages": [
                {
                    "role": "user",
                    "content": {"type": "text", "text": render_gitlab_report(milestone)},
                }
            ],
        }

    async def run_stdio(self) -> None:
        """Serve MCP requests over stdin/stdout until the client disconnects."""
        async with stdio_server() as (read_stream, write_stream):
            await self.mcp_server.run(
                read_stream,
                write_stream,
                self.mcp_server.create_initialization_options(),
            )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the MCP BigQuery server."""
    try:
        config = parse_args(argv)
        validate_config(config)

        logger.info(
            f"Initializing BigQuery with project ID: {config.project_id} "
            f"and location: {config.location}"
        )
        warehouse = BigQueryWarehouse.from_config(config)
    except (ConfigError, FileNotFoundError, ValueError, GoogleAuthError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    server = BigQueryMCPServer(config, warehouse)
    try:
        asyncio.run(server.run_stdio())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")


if __name__ == "__main__":
    main()
