"""Test harness for the BROP browser bridge."""

from loguru import logger

from brop_harness.client import BridgeClient, build_url, probe
from brop_harness.envelope import (
    RequestEnvelope,
    ResponseEnvelope,
    decode_response,
    encode_request,
)
from brop_harness.errors import (
    BridgeConnectionError,
    BridgeError,
    ConnectionClosed,
    LaunchFailure,
    ParseError,
    RemoteError,
    RequestTimeout,
)
from brop_harness.report import SuiteReport, summarize
from brop_harness.runner import RunRecord, SuiteRunner

logger.disable("brop_harness")

__all__ = [
    "BridgeClient",
    "BridgeConnectionError",
    "BridgeError",
    "ConnectionClosed",
    "LaunchFailure",
    "ParseError",
    "RemoteError",
    "RequestEnvelope",
    "RequestTimeout",
    "ResponseEnvelope",
    "RunRecord",
    "SuiteReport",
    "SuiteRunner",
    "build_url",
    "decode_response",
    "encode_request",
    "probe",
    "summarize",
]
