"""Best-effort recovery of structured recommendations from model output.

Model replies arrive as plain JSON, JSON inside a markdown fence, JSON encoded
one or more times as a JSON string, or prose with JSON somewhere inside. The
helpers here try those shapes in a fixed order and never raise: anything that
cannot be recovered comes back as raw text for the renderer to print verbatim.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

logger = logging.getLogger("node_planner")

MAX_DECODE_DEPTH = 5

SUMMARY_FIELDS = (
    "totalEstimatedInitialCost",
    "totalEstimatedMonthlyCost",
    "notes",
    "totalEstimatedCostOverBudget",
    "overBudgetReason",
)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

JsonDocument = Union[dict[str, Any], list[Any]]


@dataclass(frozen=True)
class StructuredResult:
    document: JsonDocument
    kind: Literal["document"] = "document"


@dataclass(frozen=True)
class RawTextResult:
    raw_text: str
    kind: Literal["raw_text"] = "raw_text"


NormalizedResult = Union[StructuredResult, RawTextResult]


def _loads_document(candidate: str) -> Optional[JsonDocument]:
    """Parse ``candidate`` and keep it only when it is an object or an array."""
    try:
        parsed = json.loads(candidate)
    except (TypeError, ValueError, RecursionError):
        return None
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def _is_quote_wrapped(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in {'"', "'"}


def _parse_string(text: str, depth: int) -> Optional[JsonDocument]:
    if depth > MAX_DECODE_DEPTH:
        logger.debug("Decode depth limit reached (%d); giving up on nested payload", MAX_DECODE_DEPTH)
        return None

    working = text.strip()

    # 1) double-encoded: "\"```json ... ```\"" or "\"{...}\""
    if _is_quote_wrapped(working):
        try:
            decoded = json.loads(working)
        except (TypeError, ValueError, RecursionError):
            decoded = None
        if isinstance(decoded, str):
            inner = _parse_string(decoded, depth + 1)
            if inner is not None:
                logger.debug("Recovered JSON from string literal at depth=%d", depth + 1)
                return inner
            working = decoded.strip()

    # 2) plain JSON
    parsed = _loads_document(working)
    if parsed is not None:
        return parsed

    # 3) first fenced block
    match = _FENCE_RE.search(working)
    if match:
        parsed = _loads_document(match.group(1).strip())
        if parsed is not None:
            logger.debug("Recovered JSON from fenced block")
            return parsed

    # 4) "Here you go:\n{...}"
    starts = [idx for idx in (working.find("{"), working.find("[")) if idx != -1]
    if starts:
        parsed = _loads_document(working[min(starts):].strip())
        if parsed is not None:
            logger.debug("Recovered JSON from leading bracket at offset=%d", min(starts))
            return parsed

    return None


def _nested_text(value: Any) -> Optional[str]:
    """The encoded text behind a ``recommendations`` value, if it is one."""
    if isinstance(value, str):
        return value
    # {"text": "...", "raw": true} as returned by /recommendations
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        return value["text"]
    return None


def _has_summary(body: dict[str, Any]) -> bool:
    return any(body.get(key) is not None for key in SUMMARY_FIELDS)


def _resolve_document(body: dict[str, Any], depth: int) -> dict[str, Any]:
    """Resolve ``recommendations`` in place; sibling summary fields are kept.

    An encoded or nested value that decodes to a whole document contributes its
    own fields, which take precedence over the wrapper's. A value that does not
    decode is left as it is.
    """
    if depth > MAX_DECODE_DEPTH or "recommendations" not in body:
        return body

    nested = body["recommendations"]
    text = _nested_text(nested)
    if text is not None:
        resolved = _parse_string(text, depth)
    elif isinstance(nested, dict):
        resolved = nested
    else:
        return body

    if resolved is None:
        return body
    if isinstance(resolved, list):
        return {**body, "recommendations": resolved}

    merged = {key: value for key, value in body.items() if key != "recommendations"}
    merged.update(_resolve_document(resolved, depth + 1))
    return merged


def _from_string(text: str, depth: int) -> NormalizedResult:
    parsed = _parse_string(text, depth)
    if parsed is None:
        return RawTextResult(raw_text=text)
    if isinstance(parsed, dict):
        return StructuredResult(document=_resolve_document(parsed, depth + 1))
    return StructuredResult(document=parsed)


def _from_mapping(body: dict[str, Any]) -> NormalizedResult:
    """Object rules for values posted directly (not parsed out of text)."""
    if "recommendations" in body:
        document = _resolve_document(body, 0)
        text = _nested_text(body["recommendations"])
        if document is body and text is not None and not _has_summary(body):
            return RawTextResult(raw_text=text)
        return StructuredResult(document=document)

    # {"raw": true, "text": "..."} sent at the top level
    if isinstance(body.get("text"), str):
        return _from_string(body["text"], 0)

    return StructuredResult(document=body)


def normalize(value: Any) -> NormalizedResult:
    """Turn whatever the model (or a client) produced into a ``NormalizedResult``.

    Objects and arrays are used as-is apart from resolving an encoded
    ``recommendations`` field. Strings go through the ordered recovery steps in
    ``_parse_string``; when all of them fail the original string is kept
    untouched as raw text.
    """
    if isinstance(value, str):
        return _from_string(value, 0)
    if isinstance(value, list):
        return StructuredResult(document=value)
    if isinstance(value, dict):
        return _from_mapping(value)
    if value is None:
        return RawTextResult(raw_text="")
    try:
        return RawTextResult(raw_text=json.dumps(value, indent=2, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        return RawTextResult(raw_text=str(value))


def split_document(document: Any) -> tuple[list[Any], dict[str, Any]]:
    """Split a normalized document into (recommendation items, summary fields)."""
    if isinstance(document, list):
        return list(document), {}
    if not isinstance(document, dict):
        return [], {}
    items = document.get("recommendations")
    summary = {key: document.get(key) for key in SUMMARY_FIELDS if key in document}
    return (list(items) if isinstance(items, list) else []), summary
