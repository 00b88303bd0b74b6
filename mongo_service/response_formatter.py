"""
Response formatter: extended-JSON serialization and the tool response
envelope.

Every tool returns ``{"content": [block, ...]}`` where each block is
``{"type": "text", "text": ...}``.  The first block is always a status
line; a data block follows only when there is something to show.

Documents are rendered as **relaxed** extended JSON (``bson.json_util``) so
ObjectId, dates, binaries, regexes and 64-bit integers survive the trip to
the client and can be loaded back with ``json_util.loads``.
"""

from typing import Any, Dict, List, Mapping

from bson import json_util
from bson.errors import BSONError
from bson.json_util import RELAXED_JSON_OPTIONS

from errors import InvalidArguments

INDENT = 2

ContentBlock = Dict[str, str]


# ---------------------- SERIALIZATION ----------------------

def serialize(value: Any) -> str:
    """Render a document, a list of documents, or any BSON value."""
    return json_util.dumps(value, json_options=RELAXED_JSON_OPTIONS, indent=INDENT)


# Key sets that are extended-JSON type wrappers and nothing else.  ``$regex``
# is left out: in a filter it is the query operator, usually next to
# ``$options`` and other operators on the same field.
TYPE_WRAPPER_KEYS = frozenset([
    frozenset(["$oid"]),
    frozenset(["$date"]),
    frozenset(["$numberInt"]),
    frozenset(["$numberLong"]),
    frozenset(["$numberDouble"]),
    frozenset(["$numberDecimal"]),
    frozenset(["$binary"]),
    frozenset(["$binary", "$type"]),
    frozenset(["$uuid"]),
    frozenset(["$timestamp"]),
    frozenset(["$regularExpression"]),
    frozenset(["$minKey"]),
    frozenset(["$maxKey"]),
])


def _decode(value: Any) -> Any:
    if isinstance(value, Mapping):
        decoded = {key: _decode(item) for key, item in value.items()}
        if frozenset(decoded) in TYPE_WRAPPER_KEYS:
            return json_util.object_hook(decoded, RELAXED_JSON_OPTIONS)
        return decoded
    if isinstance(value, (list, tuple)):
        return [_decode(item) for item in value]
    return value


def decode_extended(value: Any) -> Any:
    """Turn extended-JSON type wrappers (``{"$oid": ...}``, ``{"$date": ...}``)
    inside caller arguments into their BSON types.

    Only a mapping whose keys are exactly one wrapper's keys is converted;
    query operators and values that are already BSON types pass through
    unchanged.
    """
    try:
        return _decode(value)
    except (TypeError, ValueError, KeyError, BSONError) as e:
        raise InvalidArguments(f"Invalid extended JSON in arguments: {e}") from e


# ---------------------- ENVELOPE ----------------------

def plural(count: int, noun: str) -> str:
    return f"{noun}{'' if count == 1 else 's'}"


def text_content(text: str) -> ContentBlock:
    return {"type": "text", "text": text}


def tool_result(*blocks: ContentBlock) -> Dict[str, List[ContentBlock]]:
    return {"content": list(blocks)}


def format_documents(message: str, docs: List[Any]) -> Dict[str, List[ContentBlock]]:
    """Status line, plus the serialized documents when there are any."""
    content = [text_content(message)]
    if docs:
        content.append(text_content(serialize(docs)))
    return tool_result(*content)
