"""
Request normalizer: reduce whatever shape the LLM sent to CanonicalRequest {name, flat parameters}.

Accepted shapes: {name, parameters}, {tool, parameters}, a {tool_request: ...} wrapper,
parameters holding a nested "parameters" mapping, string parameters holding JSON blobs,
and a JSON string of any of these. normalize_request is idempotent.
"""

import json
from typing import Any, Dict, Optional

from loguru import logger

from base.base import CanonicalRequest, ToolRequest

NAME_REQUIRED_MESSAGE = "Tool request must include a name parameter"

# Top-level fields of a JSON blob merged when the blob has no "parameters" object of its own.
_BLOB_FIELDS = ("name", "price", "title", "content", "status", "period", "period_type", "type")

_FLOAT_FIELDS = ("price",)
_INT_FIELDS = ("days", "limit", "post_id", "user_id", "membership_id", "period")

_ENVELOPE_KEYS = ("name", "tool", "parameters")


class NormalizationError(ValueError):
    """The request has no resolvable tool name."""


def _parse_json_object(value: Any) -> Optional[Dict[str, Any]]:
    """Parse value as a JSON object; None if it is not a string holding one."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _looks_like_blob(value: Any) -> bool:
    return isinstance(value, str) and value.lstrip().startswith("{") and ('"type"' in value or '"name"' in value)


def _coerce_numeric(params: Dict[str, Any]) -> None:
    for key in _FLOAT_FIELDS:
        value = params.get(key)
        if isinstance(value, str):
            try:
                params[key] = float(value.strip().lstrip("$"))
            except ValueError:
                pass
    for key in _INT_FIELDS:
        value = params.get(key)
        if isinstance(value, str) and value.strip().isdigit():
            params[key] = int(value.strip())


def _merge_json_blobs(params: Dict[str, Any]) -> None:
    """Merge JSON-object strings that carry a "type" or "name" key into params. Bad JSON is left as is."""
    for key, value in list(params.items()):
        if key in ("tool_request", "parameters") or not _looks_like_blob(value):
            continue
        blob = _parse_json_object(value)
        if blob is None:
            logger.debug("Normalizer: parameter {} looked like JSON but did not parse; leaving it", key)
            continue
        inner = blob.get("parameters")
        if isinstance(inner, dict):
            params.update(inner)
        else:
            for field_name in _BLOB_FIELDS:
                if field_name in blob and field_name != key:
                    params[field_name] = blob[field_name]
        logger.debug("Normalizer: merged JSON blob from parameter {}", key)


def _merge_tool_request(params: Dict[str, Any]) -> None:
    wrapped = params.get("tool_request")
    blob = wrapped if isinstance(wrapped, dict) else _parse_json_object(wrapped)
    if blob is None:
        return
    inner = blob.get("parameters")
    if isinstance(inner, dict):
        params.pop("tool_request", None)
        params.update(inner)
        logger.debug("Normalizer: merged tool_request parameters")


def _flatten_nested(params: Dict[str, Any]) -> None:
    """Lift nested "parameters" blocks into params, one level at a time, until none is left."""
    while True:
        nested = params.get("parameters")
        if isinstance(nested, str):
            nested = _parse_json_object(nested)
        if not isinstance(nested, dict):
            return
        params.pop("parameters", None)
        if "type" in nested or "action" in nested:
            # nested block is the real call; its values win
            params.update(nested)
        else:
            for k, v in nested.items():
                params.setdefault(k, v)


def _unwrap(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, str):
        parsed = _parse_json_object(raw)
        if parsed is None:
            raise NormalizationError(NAME_REQUIRED_MESSAGE)
        raw = parsed
    if not isinstance(raw, dict):
        raise NormalizationError(NAME_REQUIRED_MESSAGE)
    if not raw.get("name") and not raw.get("tool") and "tool_request" in raw:
        inner = raw["tool_request"]
        inner = inner if isinstance(inner, dict) else _parse_json_object(inner)
        if inner is not None:
            return inner
    return raw


def normalize_request(raw: ToolRequest) -> CanonicalRequest:
    """
    Collapse raw into CanonicalRequest. Raises NormalizationError when neither name nor tool is present.
    Top-level keys other than name/tool/parameters are folded into parameters without overwriting.
    """
    source = _unwrap(raw)
    name = source.get("name")
    if not name and source.get("tool"):
        name = source["tool"]
        logger.debug("Normalizer: legacy tool field renamed to name ({})", name)
    if not isinstance(name, str) or not name.strip():
        raise NormalizationError(NAME_REQUIRED_MESSAGE)

    raw_params = source.get("parameters")
    if isinstance(raw_params, str):
        raw_params = _parse_json_object(raw_params)
    params: Dict[str, Any] = dict(raw_params) if isinstance(raw_params, dict) else {}
    for key, value in source.items():
        if key not in _ENVELOPE_KEYS:
            params.setdefault(key, value)

    _merge_json_blobs(params)
    _merge_tool_request(params)
    _flatten_nested(params)
    # a flattened block may itself have carried a blob
    _merge_json_blobs(params)
    _coerce_numeric(params)
    return CanonicalRequest(name=name.strip(), parameters=params, source=dict(source))
