"""
Database executor: the read-only tool operations.

Each tool follows the same pipeline:

    validate (query_guard) → clamp bounds (limits) → decode extended JSON
    → bounded driver call (maxTimeMS) → serialize / infer → response envelope

Validation always runs before the first driver call, so a rejected request
never reaches the database.  ``find`` and ``aggregate`` always carry an
effective bound.  Driver errors are re-raised as ``UpstreamFailure`` and are
never retried here.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, NamedTuple, Optional

from pymongo.errors import ExecutionTimeout, PyMongoError

from config import Settings
from errors import InvalidArguments, UnknownTool, UpstreamFailure
from limits import apply_limit, apply_sample_size
from logger import logger
from query_guard import has_limit_stage, validate_filter, validate_pipeline
from response_formatter import (
    decode_extended,
    format_documents,
    plural,
    serialize,
    text_content,
    tool_result,
)
from schema_utils import format_schema, infer_schema

# ---------------------- CONSTANTS ----------------------

SYSTEM_COLLECTION_PREFIX = "system."
EXPLAIN_VERBOSITY = "executionStats"
EXPLAIN_OPERATIONS = ("find", "aggregate")


class ToolSpec(NamedTuple):
    name: str
    title: str
    description: str
    method: str


TOOLS: List[ToolSpec] = [
    ToolSpec(
        "find", "Find Documents",
        "Query documents from a MongoDB collection with optional filtering, "
        "projection, sorting, and limiting",
        "find",
    ),
    ToolSpec(
        "aggregate", "Aggregate",
        "Run an aggregation pipeline on a MongoDB collection for data "
        "transformation and analysis",
        "aggregate",
    ),
    ToolSpec(
        "count", "Count Documents",
        "Count documents in a MongoDB collection, optionally filtered by query",
        "count",
    ),
    ToolSpec(
        "list-collections", "List Collections",
        "List all user collections in the configured database",
        "list_collections",
    ),
    ToolSpec(
        "explain", "Explain Query",
        "Get the execution plan for a find or aggregate operation to analyze "
        "query performance",
        "explain",
    ),
    ToolSpec(
        "collection-schema", "Collection Schema",
        "Infer the schema of a collection by sampling documents and analyzing "
        "field types and presence",
        "collection_schema",
    ),
]

TOOLS_BY_NAME: Dict[str, ToolSpec] = {tool.name: tool for tool in TOOLS}


def is_system_collection(name: str) -> bool:
    return name.startswith(SYSTEM_COLLECTION_PREFIX)


# ---------------------- DISPATCHER ----------------------


class OperationDispatcher:
    """Runs the read-only tools against one fixed database.

    ``database`` is a pymongo ``AsyncDatabase`` (or anything with the same
    shape); ``settings`` supplies the database name and the fixed limits.
    """

    def __init__(self, database: Any, settings: Settings) -> None:
        self._db = database
        self._settings = settings
        self._limits = settings.limits

    @property
    def database_name(self) -> str:
        return self._settings.database_name

    def _target(self, collection: str) -> str:
        return f'"{self.database_name}.{collection}"'

    @contextmanager
    def _upstream(self, tag: str, target: str) -> Iterator[None]:
        try:
            yield
        except ExecutionTimeout as e:
            logger.error("[%s] %s timed out after %d ms: %s", tag, target, self._limits.max_time_ms, e)
            raise UpstreamFailure(
                f"Operation on {target} exceeded the time limit of "
                f"{self._limits.max_time_ms} ms: {e}",
                timed_out=True,
            ) from e
        except PyMongoError as e:
            logger.error("[%s] %s failed: %s", tag, target, e)
            raise UpstreamFailure(f"Database error on {target}: {e}") from e

    # ---------------------- ROUTING ----------------------

    async def dispatch(self, tool_name: str, arguments: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Route a tool name to its handler with keyword ``arguments``."""
        spec = TOOLS_BY_NAME.get(tool_name)
        if spec is None:
            raise UnknownTool(tool_name, TOOLS_BY_NAME)
        handler = getattr(self, spec.method)
        return await handler(**dict(arguments or {}))

    # ---------------------- TOOLS ----------------------

    async def find(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[Dict[str, int]] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        query_filter = filter or {}
        validate_filter(query_filter)

        effective_limit = apply_limit(limit, self._limits)
        target = self._target(collection)

        with self._upstream("FIND", target):
            cursor = self._db[collection].find(
                decode_extended(query_filter),
                projection or None,
                sort=list(sort.items()) if sort else None,
                limit=effective_limit,
                max_time_ms=self._limits.max_time_ms,
            )
            documents = await cursor.to_list()

        count = len(documents)
        logger.info("[FIND] %s returned %d docs (limit %d)", target, count, effective_limit)

        if count == 0:
            message = f"No documents found in {target}"
        else:
            message = f"Found {count} {plural(count, 'document')} in {target}"
            if count == effective_limit:
                message += f" (limited to {effective_limit})"
        return format_documents(message, documents)

    async def aggregate(self, collection: str, pipeline: List[Dict[str, Any]]) -> Dict[str, Any]:
        validate_pipeline(pipeline)

        effective_pipeline = list(pipeline)
        if not has_limit_stage(effective_pipeline):
            effective_pipeline.append({"$limit": apply_limit(self._limits.max_limit, self._limits)})

        target = self._target(collection)
        with self._upstream("AGGREGATE", target):
            cursor = await self._db[collection].aggregate(
                decode_extended(effective_pipeline),
                maxTimeMS=self._limits.max_time_ms,
            )
            documents = await cursor.to_list()

        count = len(documents)
        logger.info("[AGGREGATE] %s — %d stages, %d docs", target, len(effective_pipeline), count)

        if count == 0:
            message = f"Aggregation on {target} returned no results"
        else:
            message = f"Aggregation on {target} returned {count} {plural(count, 'document')}"
        return format_documents(message, documents)

    async def count(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query_filter = filter or {}
        validate_filter(query_filter)

        target = self._target(collection)
        with self._upstream("COUNT", target):
            total = await self._db[collection].count_documents(
                decode_extended(query_filter),
                maxTimeMS=self._limits.max_time_ms,
            )

        logger.info("[COUNT] %s — %d docs", target, total)
        qualifier = " matching the filter" if query_filter else ""
        return tool_result(
            text_content(f"Found {total:,} {plural(total, 'document')}{qualifier} in {target}")
        )

    async def list_collections(self) -> Dict[str, Any]:
        database = f'"{self.database_name}"'
        with self._upstream("COLLECTIONS", database):
            names = await self._db.list_collection_names()

        user_collections = sorted(name for name in names if not is_system_collection(name))
        logger.info("[COLLECTIONS] %s — %d user collections", database, len(user_collections))

        if not user_collections:
            return tool_result(text_content(f"No collections found in database {database}"))

        listing = "\n".join(f"  - {name}" for name in user_collections)
        count = len(user_collections)
        return tool_result(
            text_content(f"Found {count} {plural(count, 'collection')} in {database}:\n{listing}")
        )

    async def explain(
        self,
        collection: str,
        operation: str,
        operation_args: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        args = dict(operation_args or {})

        if operation == "find":
            query_filter = args.get("filter") or {}
            validate_filter(query_filter)
            command: Dict[str, Any] = {"find": collection, "filter": query_filter}
            for option in ("projection", "sort", "limit"):
                if args.get(option):
                    command[option] = args[option]
        elif operation == "aggregate":
            pipeline = args.get("pipeline")
            if not pipeline:
                raise InvalidArguments("explain on aggregate requires a non-empty pipeline")
            validate_pipeline(pipeline)
            command = {"aggregate": collection, "pipeline": pipeline, "cursor": {}}
        else:
            raise InvalidArguments(
                f"Unsupported operation '{operation}'. Expected one of: {', '.join(EXPLAIN_OPERATIONS)}"
            )

        command["maxTimeMS"] = self._limits.max_time_ms
        target = self._target(collection)
        with self._upstream("EXPLAIN", target):
            plan = await self._db.command(
                {"explain": decode_extended(command), "verbosity": EXPLAIN_VERBOSITY}
            )

        logger.info("[EXPLAIN] %s on %s", operation, target)
        return tool_result(
            text_content(f"Execution plan for {operation} on {target}:"),
            text_content(serialize(plan)),
        )

    async def collection_schema(self, collection: str, sample_size: Optional[int] = None) -> Dict[str, Any]:
        effective_size = apply_sample_size(sample_size, self._limits)
        target = self._target(collection)

        with self._upstream("SCHEMA", target):
            cursor = await self._db[collection].aggregate(
                [{"$sample": {"size": effective_size}}],
                maxTimeMS=self._limits.max_time_ms,
            )
            documents = await cursor.to_list()

        if not documents:
            logger.info("[SCHEMA] %s is empty or missing", target)
            return tool_result(text_content(f"Collection {target} is empty or does not exist"))

        schema = infer_schema(documents)
        sampled = len(documents)
        fields = len(schema)
        logger.info("[SCHEMA] %s — sampled %d docs, %d fields", target, sampled, fields)

        return tool_result(
            text_content(
                f"Schema for {target} (sampled {sampled} {plural(sampled, 'document')}, "
                f"{fields} {plural(fields, 'field')}):\n\n{format_schema(schema)}"
            )
        )
