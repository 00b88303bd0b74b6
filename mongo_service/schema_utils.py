"""
Schema utilities: field-path extraction, kind tallying, and rendering.

Schema inference works on a sample of documents:

1. every document is walked recursively, building dot-notation paths
   (``address.city``); only embedded documents are descended into, arrays
   and BSON scalars (ObjectId, Date, ...) are terminal;
2. each value is classified with ``bson_kinds.classify``;
3. per path the union of kinds is kept, plus the number of documents in
   which the path occurs (one per document, however often it repeats);
4. presence = occurrences / sampled documents, as a whole percentage
   rounded half-up.

The rendered form lists top-level fields first, then nested ones, each
indented by depth::

    _id: ObjectId (100%)
    address: Object (75%)
    name: String (100%)
      city: String (75%)
"""

from typing import Any, Dict, List, Mapping, NamedTuple, Set

from bson_kinds import BsonKind, classify
from logger import logger

PATH_SEP = "."
TYPE_SEP = " | "
INDENT = "  "


class FieldSchema(NamedTuple):
    types: List[str]
    percentage: int


SchemaResult = Dict[str, FieldSchema]


# ---------------------- FIELD EXTRACTION ----------------------

def extract_fields(doc: Mapping[str, Any], parent_key: str = "") -> Dict[str, BsonKind]:
    """Map every field path in ``doc`` to the kind of its value."""
    fields: Dict[str, BsonKind] = {}
    for key, value in doc.items():
        path = f"{parent_key}{PATH_SEP}{key}" if parent_key else key
        kind = classify(value)
        fields[path] = kind
        if kind is BsonKind.OBJECT:
            fields.update(extract_fields(value, path))
    return fields


# ---------------------- INFERENCE ----------------------

def _presence(occurrences: int, total: int) -> int:
    # round-half-up in integer arithmetic
    return (occurrences * 200 + total) // (2 * total)


def infer_schema(documents: List[Mapping[str, Any]]) -> SchemaResult:
    """Tally kinds and presence for every path seen in ``documents``."""
    if not documents:
        return {}

    total = len(documents)
    kinds: Dict[str, Set[str]] = {}
    occurrences: Dict[str, int] = {}

    for doc in documents:
        for path, kind in extract_fields(doc).items():
            kinds.setdefault(path, set()).add(kind.value)
            occurrences[path] = occurrences.get(path, 0) + 1

    schema: SchemaResult = {
        path: FieldSchema(sorted(kinds[path]), _presence(occurrences[path], total))
        for path in kinds
    }
    logger.debug("[SCHEMA] Inferred %d paths from %d docs", len(schema), total)
    return schema


# ---------------------- RENDERING ----------------------

def _sort_key(path: str):
    return (path.count(PATH_SEP), path.casefold(), path)


def format_schema(schema: SchemaResult) -> str:
    """Render one line per path: ``<indent><leaf>: <kinds> (<pct>%)``."""
    lines: List[str] = []
    for path in sorted(schema, key=_sort_key):
        entry = schema[path]
        depth = path.count(PATH_SEP)
        leaf = path.rsplit(PATH_SEP, 1)[-1]
        lines.append(f"{INDENT * depth}{leaf}: {TYPE_SEP.join(entry.types)} ({entry.percentage}%)")
    return "\n".join(lines)
