"""JSON frames exchanged with the BROP bridge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from brop_harness.errors import ParseError

RequestId = str | int


@dataclass(slots=True)
class RequestEnvelope:
    """Command frame: ``{id, method, params}``."""

    id: RequestId
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ResponseEnvelope:
    """Reply frame: ``{id, success, result?, error?}``."""

    id: RequestId
    success: bool
    result: Any = None
    error: str | None = None


def encode_request(request: RequestEnvelope) -> str:
    """Encode a request frame as JSON text."""
    if request.id is None or request.id == "":
        raise ValueError("request id is required")
    if not request.method:
        raise ValueError("request method is required")
    payload = {
        "id": request.id,
        "method": request.method,
        "params": request.params or {},
    }
    return json.dumps(payload, ensure_ascii=False)


def _normalize_error(error: Any) -> str:
    if error is None or error == "":
        return "Unknown error"
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return json.dumps(error, default=str)


def decode_response(raw: str | bytes) -> ResponseEnvelope:
    """Decode one inbound frame.

    Raises ParseError when the frame is not JSON, not an object, or lacks
    ``id`` / a boolean ``success``.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"frame is not valid UTF-8: {exc}") from exc
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        # ValueError also covers integers past the int digit limit
        raise ParseError(f"frame is not valid JSON: {raw[:200]!r}") from exc
    if not isinstance(payload, dict):
        raise ParseError(f"frame is not a JSON object: {raw[:200]!r}")

    req_id = payload.get("id")
    if req_id is None or isinstance(req_id, bool) or not isinstance(req_id, (str, int)):
        raise ParseError(f"frame has no usable id: {raw[:200]!r}")
    success = payload.get("success")
    if not isinstance(success, bool):
        raise ParseError(f"frame {req_id!r} has no boolean 'success' field")

    if success:
        return ResponseEnvelope(id=req_id, success=True, result=payload.get("result"))
    return ResponseEnvelope(
        id=req_id, success=False, error=_normalize_error(payload.get("error"))
    )
