"""
Unit tests for the error hierarchy.
"""

from tagstream.utils.errors import (
    ErrorCategory, ErrorContext,
    ConfigurationError, ConnectionError, PayloadError, TransportError, ValidationError,
)


class TestErrors:

    def test_to_dict(self):
        cause = ValueError("bad byte")
        error = PayloadError("Invalid JSON payload", cause=cause,
                             context=ErrorContext(component="session", operation="decode"))

        data = error.to_dict()["error"]
        assert data["code"] == "PAYLOAD_ERROR"
        assert data["category"] == "protocol"
        assert data["cause"] == "bad byte"
        assert data["context"]["component"] == "session"

    def test_default_message(self):
        assert str(ConnectionError()) == "Stream connection lost"

    def test_transport_status(self):
        client = TransportError("HTTP 404", status=404)
        server = TransportError("HTTP 503", status=503)

        assert not client.is_retryable
        assert server.is_retryable
        assert client.context.metadata["status"] == 404
        assert "stream.base_url" in client.get_suggestions()[0]

    def test_hierarchy(self):
        error = ConnectionError("refused")

        assert isinstance(error, TransportError)
        assert error.category == ErrorCategory.NETWORK
        assert error.status is None

    def test_validation_error(self):
        error = ValidationError("query", "", "must not be blank")

        assert error.message == "Validation failed for field 'query': must not be blank"
        assert error.field == "query"

    def test_configuration_suggestions(self):
        assert any("TAGSTREAM_" in s for s in ConfigurationError("x").get_suggestions())
