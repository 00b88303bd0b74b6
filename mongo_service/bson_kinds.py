"""
Value kinds for decoded BSON values.

One closed enumeration; every place that needs to know what a value is
goes through ``classify`` so the answer never differs:

    Null        — None (the driver also decodes BSON ``undefined`` to None)
    ObjectId    — bson.ObjectId
    Date        — datetime / bson.DatetimeMS
    RegExp      — bson.Regex / compiled ``re`` pattern
    Binary      — bson.Binary / bytes
    Array       — list / tuple
    Object      — embedded document
    Long        — bson.Int64
    Int         — int, or a whole-valued float
    Double      — fractional (or non-finite) float
    Decimal128  — bson.Decimal128
    Boolean     — bool
    String      — str
    Unknown     — anything else (Timestamp, Code, MinKey, ...)
"""

import datetime as _dt
import math
import re
from enum import Enum
from typing import Any, Mapping

from bson.binary import Binary
from bson.datetime_ms import DatetimeMS
from bson.decimal128 import Decimal128
from bson.int64 import Int64
from bson.objectid import ObjectId
from bson.regex import Regex


class BsonKind(str, Enum):
    NULL = "null"
    OBJECT_ID = "ObjectId"
    DATE = "Date"
    REGEXP = "RegExp"
    BINARY = "Binary"
    ARRAY = "Array"
    OBJECT = "Object"
    LONG = "Long"
    INT = "Int"
    DOUBLE = "Double"
    DECIMAL128 = "Decimal128"
    BOOLEAN = "Boolean"
    STRING = "String"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


def classify(value: Any) -> BsonKind:
    """Classify a single decoded value."""
    if value is None:
        return BsonKind.NULL
    # bool and Int64 are int subclasses, check them first
    if isinstance(value, bool):
        return BsonKind.BOOLEAN
    if isinstance(value, Int64):
        return BsonKind.LONG
    if isinstance(value, int):
        return BsonKind.INT
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return BsonKind.INT
        return BsonKind.DOUBLE
    if isinstance(value, Decimal128):
        return BsonKind.DECIMAL128
    if isinstance(value, str):
        return BsonKind.STRING
    if isinstance(value, ObjectId):
        return BsonKind.OBJECT_ID
    if isinstance(value, (_dt.datetime, DatetimeMS)):
        return BsonKind.DATE
    if isinstance(value, (Regex, re.Pattern)):
        return BsonKind.REGEXP
    if isinstance(value, (Binary, bytes)):
        return BsonKind.BINARY
    if isinstance(value, (list, tuple)):
        return BsonKind.ARRAY
    if isinstance(value, Mapping):
        return BsonKind.OBJECT
    return BsonKind.UNKNOWN
