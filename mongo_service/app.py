"""
FastAPI tool service — read-only MongoDB tools for tool-calling clients.

Endpoints:
- ``GET  /health``          liveness
- ``GET  /tools``           tool names, titles and descriptions
- ``POST /tools/{name}``    run a tool; the JSON body holds its arguments

Every ``/tools`` route requires the ``X-API-Key`` header.  Tool arguments
are checked against a request model first, then handed to the
``OperationDispatcher`` which enforces the query guard and limits.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Type, Union

from fastapi import Body, Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cluster_manager import close_client, get_database
from config import API_KEY_ENV, Settings, load_settings
from db_executor import TOOLS, TOOLS_BY_NAME, OperationDispatcher
from errors import (
    ConfigurationMissing,
    InvalidArguments,
    PolicyViolation,
    UnknownTool,
    UpstreamFailure,
)
from limits import DEFAULT_LIMIT, DEFAULT_SAMPLE_SIZE, MAX_LIMIT, MAX_SAMPLE_SIZE
from logger import logger

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await close_client()


app = FastAPI(title="MongoDB Read-only Tools", version=VERSION, lifespan=lifespan)


# ---------------------- REQUEST MODELS ----------------------


class ToolRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CollectionRequest(ToolRequest):
    collection: str = Field(min_length=1, description="Collection name")


class FindRequest(CollectionRequest):
    filter: Dict[str, Any] = Field(
        default_factory=dict,
        description="Query filter matching MongoDB query syntax. Example: { status: 'active' }",
    )
    projection: Optional[Dict[str, Union[bool, int]]] = Field(
        default=None,
        description="Fields to include/exclude. Example: { name: 1, _id: 0 }",
    )
    limit: int = Field(
        default=DEFAULT_LIMIT,
        ge=1,
        le=MAX_LIMIT,
        description=f"Max documents to return (1-{MAX_LIMIT}, default: {DEFAULT_LIMIT})",
    )
    sort: Optional[Dict[str, Literal[1, -1]]] = Field(
        default=None,
        description="Sort order. Example: { createdAt: -1 } for descending",
    )


class AggregateRequest(CollectionRequest):
    pipeline: List[Dict[str, Any]] = Field(
        min_length=1,
        description="Aggregation pipeline stages. Example: "
        "[{ $match: { status: 'active' } }, { $group: { _id: '$category', count: { $sum: 1 } } }]",
    )


class CountRequest(CollectionRequest):
    filter: Dict[str, Any] = Field(
        default_factory=dict,
        description="Query filter to count matching documents. Example: { status: 'active' }",
    )


class ListCollectionsRequest(ToolRequest):
    pass


class ExplainFindArgs(ToolRequest):
    filter: Dict[str, Any] = Field(default_factory=dict)
    projection: Optional[Dict[str, Union[bool, int]]] = None
    sort: Optional[Dict[str, Literal[1, -1]]] = None
    limit: Optional[int] = Field(default=None, ge=1)


class ExplainAggregateArgs(ToolRequest):
    pipeline: List[Dict[str, Any]] = Field(min_length=1)


class ExplainRequest(CollectionRequest):
    operation: Literal["find", "aggregate"] = Field(description="Operation type to explain")
    operation_args: Dict[str, Any] = Field(
        alias="operationArgs",
        description="Arguments for the operation. For find: { filter?, projection?, sort?, limit? }. "
        "For aggregate: { pipeline: [...] }",
    )

    @model_validator(mode="after")
    def _check_operation_args(self) -> "ExplainRequest":
        args_model = ExplainFindArgs if self.operation == "find" else ExplainAggregateArgs
        self.operation_args = args_model.model_validate(self.operation_args).model_dump()
        return self


class CollectionSchemaRequest(CollectionRequest):
    sample_size: int = Field(
        default=DEFAULT_SAMPLE_SIZE,
        ge=1,
        le=MAX_SAMPLE_SIZE,
        alias="sampleSize",
        description=f"Number of documents to sample for schema inference "
        f"(1-{MAX_SAMPLE_SIZE}, default: {DEFAULT_SAMPLE_SIZE})",
    )


REQUEST_MODELS: Dict[str, Type[ToolRequest]] = {
    "find": FindRequest,
    "aggregate": AggregateRequest,
    "count": CountRequest,
    "list-collections": ListCollectionsRequest,
    "explain": ExplainRequest,
    "collection-schema": CollectionSchemaRequest,
}


# ---------------------- DEPENDENCIES ----------------------


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def _config_failure(e: ConfigurationMissing) -> HTTPException:
    logger.error("[CONFIG] %s", e)
    return HTTPException(status_code=500, detail=str(e))


def _settings_or_500() -> Settings:
    try:
        return get_settings()
    except ConfigurationMissing as e:
        raise _config_failure(e)


def _configured_api_key() -> str:
    settings = get_settings()
    if not settings.api_key:
        raise ConfigurationMissing(API_KEY_ENV)
    return settings.api_key


def require_api_key(x_api_key: Optional[str] = Header(default=None, alias="X-API-Key")) -> None:
    try:
        api_key = _configured_api_key()
    except ConfigurationMissing as e:
        raise _config_failure(e)
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if x_api_key != api_key:
        logger.warning("[AUTH] Rejected request with invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_dispatcher() -> OperationDispatcher:
    settings = _settings_or_500()
    return OperationDispatcher(get_database(settings), settings)


# ---------------------- ENDPOINTS ----------------------


@app.get("/health")
def health_check():
    return {"status": "ok", "version": VERSION}


@app.get("/tools", dependencies=[Depends(require_api_key)])
def list_tools():
    return {
        "tools": [
            {"name": tool.name, "title": tool.title, "description": tool.description}
            for tool in TOOLS
        ]
    }


@app.post("/tools/{tool_name}", dependencies=[Depends(require_api_key)])
async def call_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
):
    """Validate arguments → guard → bounded execution → response envelope."""
    if tool_name not in TOOLS_BY_NAME:
        raise HTTPException(status_code=404, detail=str(UnknownTool(tool_name, TOOLS_BY_NAME)))

    try:
        request = REQUEST_MODELS[tool_name].model_validate(arguments or {})
    except ValidationError as e:
        detail = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise HTTPException(status_code=422, detail=detail)

    logger.info("[TOOL] %s called", tool_name)

    try:
        return await dispatcher.dispatch(tool_name, request.model_dump())
    except (PolicyViolation, InvalidArguments) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(status_code=504 if e.timed_out else 502, detail=str(e))
