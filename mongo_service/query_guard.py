"""
Query guard: rejects caller-supplied filters and pipelines that could run
server-side code or write data.

- Filter operator deny-list (``$where``, ``$function``, ``$accumulator``),
  scanned at every depth
- Pipeline stage deny-list (``$out``, ``$merge`` and the code operators),
  checked on each stage's own keys
- ``$lookup`` with a nested ``pipeline`` rejected outright
- Code operators scanned recursively through every stage body

The guard only inspects; it never rewrites the structure it is given.
"""

from typing import Any, Iterable, List, Mapping, Optional

from errors import PolicyViolation
from logger import logger

# ---------------------- DENY-LISTS ----------------------

PROHIBITED_FILTER_OPERATORS = ("$where", "$function", "$accumulator")
PROHIBITED_STAGES = ("$out", "$merge", "$function", "$accumulator")
CODE_EXECUTION_OPERATORS = ("$function", "$accumulator")

LOOKUP_STAGE = "$lookup"
LOOKUP_PIPELINE_KEY = "pipeline"


# ---------------------- TRAVERSAL ----------------------


def find_prohibited_key(structure: Any, prohibited: Iterable[str]) -> Optional[str]:
    """Return the first prohibited key found in ``structure``, or ``None``.

    Depth-first: at a mapping each key is tested before its value is
    scanned, so the reported key is the first one in document order.
    Values are scanned even under legal operators, which is how a
    ``$where`` hidden inside ``$or`` or an array element gets caught.
    """
    denied = frozenset(prohibited)
    return _scan(structure, denied)


def _scan(node: Any, denied: frozenset) -> Optional[str]:
    if isinstance(node, Mapping):
        for key, value in node.items():
            if key in denied:
                return key
            found = _scan(value, denied)
            if found is not None:
                return found
        return None
    if isinstance(node, (list, tuple)):
        for item in node:
            found = _scan(item, denied)
            if found is not None:
                return found
        return None
    return None


# ---------------------- VALIDATORS ----------------------


def validate_filter(query_filter: Mapping[str, Any]) -> None:
    """Raise ``PolicyViolation`` if the filter contains a scripting operator."""
    found = find_prohibited_key(query_filter, PROHIBITED_FILTER_OPERATORS)
    if found is not None:
        logger.warning("[POLICY] Rejected filter — operator %s", found)
        raise PolicyViolation.operator(found, "filter", PROHIBITED_FILTER_OPERATORS)


def validate_pipeline(pipeline: List[Mapping[str, Any]]) -> None:
    """Raise ``PolicyViolation`` for the first unsafe stage.

    Write stages are only meaningful at the top of a stage, so ``$out`` /
    ``$merge`` are checked against the stage's own keys.  Code operators
    are scanned through the whole stage body.
    """
    for index, stage in enumerate(pipeline):
        for key in stage:
            if key in PROHIBITED_STAGES:
                logger.warning("[POLICY] Rejected pipeline — stage %d is %s", index, key)
                raise PolicyViolation.stage(key, PROHIBITED_STAGES)

        lookup = stage.get(LOOKUP_STAGE)
        if isinstance(lookup, Mapping) and LOOKUP_PIPELINE_KEY in lookup:
            logger.warning("[POLICY] Rejected pipeline — stage %d is $lookup with pipeline", index)
            raise PolicyViolation(
                LOOKUP_STAGE,
                "$lookup with pipeline is not allowed for security reasons. "
                "Use $lookup with localField/foreignField instead.",
            )

        found = find_prohibited_key(stage, CODE_EXECUTION_OPERATORS)
        if found is not None:
            logger.warning("[POLICY] Rejected pipeline — operator %s in stage %d", found, index)
            raise PolicyViolation(
                found,
                f'Prohibited operator "{found}" found in pipeline stage. '
                "Code execution operators are not allowed.",
            )


def has_limit_stage(pipeline: List[Mapping[str, Any]]) -> bool:
    """True when any stage of the pipeline is a ``$limit`` stage."""
    return any("$limit" in stage for stage in pipeline)
