"""Tests for value classification and schema inference."""

import datetime as dt
import re

import pytest
from bson.binary import Binary
from bson.decimal128 import Decimal128
from bson.int64 import Int64
from bson.objectid import ObjectId
from bson.regex import Regex
from bson.timestamp import Timestamp

from bson_kinds import BsonKind, classify
from schema_utils import FieldSchema, extract_fields, format_schema, infer_schema


# ─── classify ───────────────────────────────────────────────


@pytest.mark.parametrize(
    "value, kind",
    [
        (None, BsonKind.NULL),
        (ObjectId(), BsonKind.OBJECT_ID),
        (dt.datetime(2024, 1, 1), BsonKind.DATE),
        (Regex("^a", "i"), BsonKind.REGEXP),
        (re.compile("^a"), BsonKind.REGEXP),
        (Binary(b"\x00\x01"), BsonKind.BINARY),
        (b"raw", BsonKind.BINARY),
        ([1, 2], BsonKind.ARRAY),
        ({"a": 1}, BsonKind.OBJECT),
        (Int64(2**40), BsonKind.LONG),
        (3, BsonKind.INT),
        (3.0, BsonKind.INT),
        (3.5, BsonKind.DOUBLE),
        (float("nan"), BsonKind.DOUBLE),
        (Decimal128("1.10"), BsonKind.DECIMAL128),
        (True, BsonKind.BOOLEAN),
        ("text", BsonKind.STRING),
        (Timestamp(0, 1), BsonKind.UNKNOWN),
    ],
)
def test_classify(value, kind):
    assert classify(value) is kind


# ─── extract_fields ─────────────────────────────────────────


def test_extract_fields_builds_dotted_paths():
    doc = {"name": "Ada", "address": {"city": "London", "geo": {"lat": 51.5}}}
    assert extract_fields(doc) == {
        "name": BsonKind.STRING,
        "address": BsonKind.OBJECT,
        "address.city": BsonKind.STRING,
        "address.geo": BsonKind.OBJECT,
        "address.geo.lat": BsonKind.DOUBLE,
    }


def test_extract_fields_does_not_descend_into_arrays_or_scalars():
    doc = {"tags": [{"k": 1}], "_id": ObjectId(), "when": dt.datetime(2024, 1, 1)}
    assert set(extract_fields(doc)) == {"tags", "_id", "when"}


# ─── infer_schema ───────────────────────────────────────────


def test_kinds_are_unioned_and_presence_counts_documents():
    docs = [{"a": 1}, {"a": 2}, {"a": 3.0}, {"a": "x"}]
    schema = infer_schema(docs)
    assert schema["a"] == FieldSchema(["Int", "String"], 100)


def test_presence_is_per_document():
    docs = [
        {"a": 1, "address": {"city": "A"}},
        {"a": 1, "address": {"city": "B"}},
        {"a": 1},
        {"a": 1},
    ]
    schema = infer_schema(docs)
    assert schema["address"].percentage == 50
    assert schema["address.city"] == FieldSchema(["String"], 50)


def test_presence_rounds_half_up():
    # 1 of 8 → 12.5% → 13
    docs = [{"a": 1}] + [{"b": 1}] * 7
    assert infer_schema(docs)["a"].percentage == 13


def test_presence_rounds_to_nearest():
    docs = [{"a": 1}, {"b": 1}, {"b": 1}]
    schema = infer_schema(docs)
    assert schema["a"].percentage == 33
    assert schema["b"].percentage == 67


def test_empty_sample_gives_empty_schema():
    assert infer_schema([]) == {}


# ─── format_schema ──────────────────────────────────────────


def test_format_schema_orders_by_depth_then_name():
    docs = [
        {"_id": ObjectId(), "name": "x", "address": {"zip": "1", "city": "c"}, "Age": 3},
        {"_id": ObjectId(), "name": None, "address": {"city": "d"}, "Age": 4.5},
    ]
    rendered = format_schema(infer_schema(docs))
    assert rendered.splitlines() == [
        "_id: ObjectId (100%)",
        "address: Object (100%)",
        "Age: Double | Int (100%)",
        "name: String | null (100%)",
        "  city: String (100%)",
        "  zip: String (50%)",
    ]


def test_format_schema_indents_by_depth():
    rendered = format_schema(infer_schema([{"a": {"b": {"c": True}}}]))
    assert rendered == "a: Object (100%)\n  b: Object (100%)\n    c: Boolean (100%)"
