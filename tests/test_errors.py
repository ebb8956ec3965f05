import asyncio

import httpx
import pytest

from shipping_mcp.services.errors import (
    ERROR_CLASSES,
    DomainError,
    ErrorKind,
    NotFoundError,
    RequestTimeoutError,
    TransportFailureError,
    ValidationError,
    kind_for_status,
    normalize_response,
    normalize_transport_error,
    status_message,
)


@pytest.mark.parametrize(
    "status, kind",
    [
        (400, ErrorKind.BAD_REQUEST),
        (401, ErrorKind.UNAUTHORIZED),
        (403, ErrorKind.UNAUTHORIZED),
        (404, ErrorKind.NOT_FOUND),
        (410, ErrorKind.NOT_FOUND),
        (409, ErrorKind.BAD_REQUEST),
        (422, ErrorKind.BAD_REQUEST),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.UPSTREAM_UNAVAILABLE),
        (503, ErrorKind.UPSTREAM_UNAVAILABLE),
    ],
)
def test_kind_for_status(status, kind):
    assert kind_for_status(status) is kind


def test_every_kind_has_a_class():
    assert set(ERROR_CLASSES) == set(ErrorKind)
    for kind, cls in ERROR_CLASSES.items():
        assert issubclass(cls, DomainError)
        assert cls.kind is kind


def test_retryable_kinds():
    retryable = {kind for kind in ErrorKind if kind.retryable}
    assert retryable == {
        ErrorKind.RATE_LIMITED,
        ErrorKind.UPSTREAM_UNAVAILABLE,
        ErrorKind.TRANSPORT_TIMEOUT,
        ErrorKind.TRANSPORT_FAILURE,
    }


def test_status_message_fallbacks():
    assert status_message(404) == "not found"
    assert status_message(502) == "upstream unavailable"
    assert status_message(418) == "HTTP 418 error"


class TestNormalizeResponse:
    def test_easypost_error_body(self):
        body = {"error": {"code": "SHIPMENT.POSTAGE.FAILURE", "message": "Rate expired"}}
        error = normalize_response(422, body, service_id="easypost")

        assert error.kind is ErrorKind.BAD_REQUEST
        assert error.message == "Rate expired"
        assert error.code == "SHIPMENT.POSTAGE.FAILURE"
        assert error.service_id == "easypost"
        assert error.details == {"response": body}

    def test_veeqo_errors_list(self):
        error = normalize_response(422, {"errors": ["Title can't be blank", {"message": "bad sku"}]})
        assert error.message == "Title can't be blank; bad sku"

    def test_rails_errors_dict(self):
        error = normalize_response(422, {"errors": {"email": ["is invalid"]}})
        assert error.message == "email is invalid"

    def test_plain_error_string(self):
        error = normalize_response(401, {"error": "Invalid API key"})
        assert error.kind is ErrorKind.UNAUTHORIZED
        assert error.message == "Invalid API key"
        assert error.code == "HTTP_401"

    def test_empty_body_uses_status_message(self):
        error = normalize_response(404, None)
        assert isinstance(error, NotFoundError)
        assert error.message == "not found"
        assert error.details == {}

    def test_html_body_kept_in_details(self):
        error = normalize_response(503, "<html>Service Unavailable</html>")
        assert error.message == "upstream unavailable"
        assert error.details["response"] == "<html>Service Unavailable</html>"

    def test_retry_after_carried(self):
        error = normalize_response(429, None, retry_after=3.0)
        assert error.retry_after == 3.0
        assert error.details["retry_after"] == 3.0


class TestNormalizeTransportError:
    def test_timeout(self):
        error = normalize_transport_error(httpx.ConnectTimeout("timed out"), timeout=2.5)
        assert isinstance(error, RequestTimeoutError)
        assert error.message == "request timed out after 2.5s"
        assert error.code == "REQUEST_TIMEOUT"
        assert error.details["timeout"] == 2.5

    def test_connection_failure_keeps_raw_detail_out_of_message(self):
        exc = httpx.ConnectError("[Errno -2] Name or service not known: api.internal")
        error = normalize_transport_error(exc)
        assert isinstance(error, TransportFailureError)
        assert error.message == "connection to upstream failed"
        assert "api.internal" in error.details["error"]

    @pytest.mark.parametrize(
        "exc, code",
        [
            (httpx.TooManyRedirects("Exceeded maximum allowed redirects."), "TOO_MANY_REDIRECTS"),
            (httpx.DecodingError("Error -3 while decompressing data"), "DECODING_FAILED"),
        ],
    )
    def test_protocol_failures_are_transport_failures(self, exc, code):
        error = normalize_transport_error(exc)
        assert isinstance(error, TransportFailureError)
        assert error.kind is ErrorKind.TRANSPORT_FAILURE
        assert error.code == code
        assert error.details["error_type"] == type(exc).__name__

    def test_overall_deadline_is_a_timeout(self):
        error = normalize_transport_error(asyncio.TimeoutError(), timeout=5.0)
        assert isinstance(error, RequestTimeoutError)
        assert error.message == "request timed out after 5s"


def test_to_dict_and_repr():
    error = ValidationError("weight must be positive", details={"field": "weight"})
    assert error.to_dict() == {
        "kind": "validation",
        "message": "weight must be positive",
        "status": None,
        "code": "VALIDATION",
        "details": {"field": "weight"},
    }
    assert "validation" in repr(error)
    assert str(error) == "weight must be positive"
