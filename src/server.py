"""MCP server exposing history and bookmark search."""
import json
import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to Python path for absolute imports
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from src.bookmarks_reader import read_chrome_bookmarks
from src.config import Config, get_config
from src.index_store import IndexStore
from src.models import RecordKind, SearchOptions
from src.record_store import RecordStore
from src.search import SearchEngine
from src.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything the tool handlers need, built once by ``create_context``."""
    config: Config
    records: RecordStore
    snapshots: SnapshotStore
    engine: SearchEngine

    async def close(self) -> None:
        await self.snapshots.close()
        await self.records.close()


async def create_context(config: Optional[Config] = None) -> AppContext:
    """Open the stores, wire up the search engine and initialize the index.

    Args:
        config: Configuration (defaults to the environment config)

    Returns:
        Initialized AppContext
    """
    config = config or get_config()
    db_path = config.resolved_db_path

    records = RecordStore(db_path, max_history_items=config.max_history_items)
    await records.initialize()

    snapshots = SnapshotStore(db_path)
    await snapshots.initialize()

    index = IndexStore(
        records,
        snapshots,
        refresh_interval=timedelta(seconds=config.index.refresh_interval),
    )
    engine = SearchEngine(index)
    await engine.initialize_index()

    return AppContext(config=config, records=records, snapshots=snapshots, engine=engine)


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


def _json(data: Any) -> List[TextContent]:
    return _text(json.dumps(data, indent=2, default=str))


def _flag(arguments: Dict[str, Any], name: str, default: bool = True) -> bool:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"'{name}' must be a boolean, got {value!r}")
    return value


# ----------------------------------------------------------------------
# Tool handlers
# ----------------------------------------------------------------------

async def health_check_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    stats = context.engine.get_index_stats()
    return _json({"status": "ok", "index": stats})


async def search_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    """Tool handler for search."""
    query = arguments.get("query", "")
    if not query:
        return _text("Error: 'query' parameter is required")

    limit = arguments.get("limit")
    if limit is None:
        limit = context.config.index.default_limit

    try:
        options = SearchOptions(
            limit=int(limit),
            include_history=_flag(arguments, "include_history"),
            include_bookmarks=_flag(arguments, "include_bookmarks"),
            fuzzy_match=_flag(arguments, "fuzzy_match"),
            sort_by=arguments.get("sort_by") or "relevance",
        )
    except (TypeError, ValueError) as e:
        return _text(f"Error: {e}")

    results = await context.engine.search(query, options)
    if not results:
        return _text(f"No history or bookmarks found matching query: {query}")

    return _json([result.to_dict() for result in results])


async def add_history_visit_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    url = arguments.get("url", "")
    if not url:
        return _text("Error: 'url' parameter is required")

    if not context.config.auto_save_history:
        return _text("History saving is disabled; visit not recorded.")

    record = await context.records.add_history_visit(url, arguments.get("title", "") or url)
    await context.engine.add_record_to_index(record)
    return _json(record.to_dict())


async def remove_history_item_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    record_id = arguments.get("id", "")
    if not record_id:
        return _text("Error: 'id' parameter is required")

    removed = await context.records.remove_history_record(record_id)
    await context.engine.remove_record_from_index(record_id, RecordKind.HISTORY)
    if not removed:
        return _text(f"History item not found: {record_id}")
    return _text(f"Removed history item {record_id}")


async def clear_history_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    count = await context.records.clear_history()
    await context.engine.rebuild_index()
    return _text(f"Cleared {count} history items")


async def add_bookmark_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    url = arguments.get("url", "")
    title = arguments.get("title", "")
    if not url or not title:
        return _text("Error: 'url' and 'title' parameters are required")

    record = await context.records.add_bookmark(
        url,
        title,
        folder=arguments.get("folder", ""),
        tags=arguments.get("tags"),
    )
    if record is None:
        return _text(f"Bookmark already exists: {url}")

    await context.engine.add_record_to_index(record)
    return _json(record.to_dict())


async def update_bookmark_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    record_id = arguments.get("id", "")
    if not record_id:
        return _text("Error: 'id' parameter is required")

    try:
        record = await context.records.update_bookmark(
            record_id,
            title=arguments.get("title"),
            url=arguments.get("url"),
            folder=arguments.get("folder"),
            tags=arguments.get("tags"),
        )
    except ValueError as e:
        return _text(f"Error: {e}")
    if record is None:
        return _text(f"Bookmark not found: {record_id}")

    await context.engine.add_record_to_index(record)
    return _json(record.to_dict())


async def remove_bookmark_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    record_id = arguments.get("id", "")
    if not record_id:
        return _text("Error: 'id' parameter is required")

    removed = await context.records.remove_bookmark(record_id)
    await context.engine.remove_record_from_index(record_id, RecordKind.BOOKMARK)
    if not removed:
        return _text(f"Bookmark not found: {record_id}")
    return _text(f"Removed bookmark {record_id}")


async def import_chrome_bookmarks_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    path_arg = arguments.get("bookmarks_path")
    bookmarks_path = Path(path_arg).expanduser() if path_arg else None

    try:
        bookmarks = read_chrome_bookmarks(bookmarks_path, profile=context.config.chrome_profile)
    except FileNotFoundError as e:
        return _text(f"Error: {e}")
    except json.JSONDecodeError as e:
        return _text(f"Error: Chrome bookmarks file is malformed: {e}")

    imported = await context.records.import_bookmarks(bookmarks)
    await context.engine.rebuild_index()
    return _text(f"Imported {imported} of {len(bookmarks)} Chrome bookmarks")


async def rebuild_index_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    rebuilt = await context.engine.rebuild_index()
    return _json({"rebuilt": rebuilt, "index": context.engine.get_index_stats()})


async def clear_index_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    await context.engine.clear_index()
    return _text("Search index cleared")


async def get_index_stats_tool(context: AppContext, arguments: Dict[str, Any]) -> List[TextContent]:
    return _json(context.engine.get_index_stats())


TOOL_HANDLERS = {
    "health_check": health_check_tool,
    "search": search_tool,
    "add_history_visit": add_history_visit_tool,
    "remove_history_item": remove_history_item_tool,
    "clear_history": clear_history_tool,
    "add_bookmark": add_bookmark_tool,
    "update_bookmark": update_bookmark_tool,
    "remove_bookmark": remove_bookmark_tool,
    "import_chrome_bookmarks": import_chrome_bookmarks_tool,
    "rebuild_index": rebuild_index_tool,
    "clear_index": clear_index_tool,
    "get_index_stats": get_index_stats_tool,
}


def _object_schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


TOOLS = [
    Tool(
        name="health_check",
        description="Check that the server is running and report search index statistics.",
        inputSchema=_object_schema({}),
    ),
    Tool(
        name="search",
        description="Search browsing history and bookmarks. Returns ranked results with score, matched fields and a snippet.",
        inputSchema=_object_schema({
            "query": {"type": "string", "description": "Free-text search query"},
            "limit": {"type": "integer", "description": "Maximum number of results (default 50)"},
            "include_history": {"type": "boolean", "description": "Include history results (default true)"},
            "include_bookmarks": {"type": "boolean", "description": "Include bookmark results (default true)"},
            "fuzzy_match": {"type": "boolean", "description": "Allow approximate (typo-tolerant) matches (default true)"},
            "sort_by": {
                "type": "string",
                "enum": ["relevance", "date", "frequency"],
                "description": "Result ordering (default relevance)",
            },
        }, ["query"]),
    ),
    Tool(
        name="add_history_visit",
        description="Record a page visit in history and index it immediately.",
        inputSchema=_object_schema({
            "url": {"type": "string", "description": "Visited URL"},
            "title": {"type": "string", "description": "Page title"},
        }, ["url"]),
    ),
    Tool(
        name="remove_history_item",
        description="Delete a history item by id.",
        inputSchema=_object_schema({
            "id": {"type": "string", "description": "History item id"},
        }, ["id"]),
    ),
    Tool(
        name="clear_history",
        description="Delete all browsing history.",
        inputSchema=_object_schema({}),
    ),
    Tool(
        name="add_bookmark",
        description="Add a bookmark and index it immediately.",
        inputSchema=_object_schema({
            "url": {"type": "string", "description": "Bookmark URL"},
            "title": {"type": "string", "description": "Bookmark title"},
            "folder": {"type": "string", "description": "Folder name"},
            "tags": {"type": "array", "items": {"type": "string"}, "description": "Tags"},
        }, ["url", "title"]),
    ),
    Tool(
        name="update_bookmark",
        description="Update a bookmark's title, URL, folder or tags.",
        inputSchema=_object_schema({
            "id": {"type": "string", "description": "Bookmark id"},
            "title": {"type": "string"},
            "url": {"type": "string"},
            "folder": {"type": "string"},
            "tags": {"type": "array", "items": {"type": "string"}},
        }, ["id"]),
    ),
    Tool(
        name="remove_bookmark",
        description="Delete a bookmark by id.",
        inputSchema=_object_schema({
            "id": {"type": "string", "description": "Bookmark id"},
        }, ["id"]),
    ),
    Tool(
        name="import_chrome_bookmarks",
        description="Import bookmarks from a Chrome Bookmarks file (defaults to the configured profile).",
        inputSchema=_object_schema({
            "bookmarks_path": {"type": "string", "description": "Path to a Chrome Bookmarks file"},
        }),
    ),
    Tool(
        name="rebuild_index",
        description="Force a full rebuild of the search index.",
        inputSchema=_object_schema({}),
    ),
    Tool(
        name="clear_index",
        description="Empty the search index (it is rebuilt on the next scheduled refresh).",
        inputSchema=_object_schema({}),
    ),
    Tool(
        name="get_index_stats",
        description="Report search index entry counts and last build time.",
        inputSchema=_object_schema({}),
    ),
]


def create_server(context: AppContext) -> Server:
    """Create and configure the MCP server.

    Args:
        context: Initialized application context shared by all tool handlers

    Returns:
        Configured Server instance
    """
    server = Server("browser-search-mcp")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        handler = TOOL_HANDLERS.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")
        return await handler(context, arguments or {})

    return server


async def main():
    """Main entry point for the MCP server."""
    config = get_config()

    # stdout is the MCP stdio transport
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    context = await create_context(config)
    server = create_server(context)

    try:
        async with stdio_server() as (read_stream, write_stream):
            initialization_options = server.create_initialization_options()
            await server.run(read_stream, write_stream, initialization_options)
    finally:
        await context.close()
