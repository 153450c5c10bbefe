import httpx
import pytest

from ollama_bridge.errors import (
    Cancelled,
    OllamaBridgeError,
    ToolResolutionFailure,
    TransportFailure,
    classify_error,
)


@pytest.fixture
def request_():
    return httpx.Request("POST", "http://localhost:11434/api/chat")


def test_bridge_errors_pass_through():
    original = Cancelled()
    assert classify_error(original) is original


def test_timeout(request_):
    wrapped = classify_error(httpx.ReadTimeout("slow", request=request_))

    assert isinstance(wrapped, TransportFailure)
    assert str(wrapped).startswith("Timed out")
    assert isinstance(wrapped.__cause__, httpx.ReadTimeout)


def test_status_error(request_):
    response = httpx.Response(503, request=request_)
    exc = httpx.HTTPStatusError("unavailable", request=request_, response=response)

    wrapped = classify_error(exc)

    assert wrapped.status_code == 503
    assert wrapped.original_exc is exc


def test_unknown_exception():
    wrapped = classify_error(OSError("disk"))

    assert isinstance(wrapped, OllamaBridgeError)
    assert "OSError" in str(wrapped)


def test_tool_resolution_message():
    failure = ToolResolutionFailure("lookup")

    assert str(failure) == 'Tool "lookup" does not exist'
    assert failure.tool_name == "lookup"
