"""Unit tests for the Resend HTTP transport."""

from unittest.mock import Mock

import pytest
import requests

from notifier.transport import OutboundMessage, ResendTransport, TransportConfigurationError
from notifier.transport.resend import MAX_BATCH_SIZE


def outbound(id="m1", to="alice@example.com"):
    return OutboundMessage(id=id, to=to, subject="Hello", html="<p>Hi</p>", text="Hi")


def response(status_code=200, body=None, reason="OK"):
    resp = Mock()
    resp.status_code = status_code
    resp.reason = reason
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def session():
    mock = Mock()
    mock.headers = {}
    return mock


@pytest.fixture
def transport(session):
    return ResendTransport(
        api_key="re_test_key",
        from_address="notify@example.com",
        from_name="Acme",
        timeout=10,
        session=session,
    )


class TestSetup:
    def test_headers(self, transport, session):
        assert session.headers["Authorization"] == "Bearer re_test_key"
        assert session.headers["Content-Type"] == "application/json"

    def test_requires_api_key(self, session):
        with pytest.raises(TransportConfigurationError):
            ResendTransport(api_key="  ", from_address="notify@example.com", session=session)


class TestSend:
    def test_success(self, transport, session):
        session.post.return_value = response(body={"id": "re_123"})

        result = transport.send(outbound())

        assert result.success
        assert result.message_id == "re_123"
        url = session.post.call_args.args[0]
        body = session.post.call_args.kwargs["json"]
        assert url == "https://api.resend.com/emails"
        assert body == {
            "from": "Acme <notify@example.com>",
            "to": ["alice@example.com"],
            "subject": "Hello",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }
        assert session.post.call_args.kwargs["timeout"] == 10

    def test_http_error_is_a_failed_result(self, transport, session):
        session.post.return_value = response(
            422, {"message": "Invalid `to` field"}, reason="Unprocessable Entity"
        )

        result = transport.send(outbound())

        assert result.success is False
        assert result.error == "HTTP 422: Invalid `to` field"

    def test_server_error_without_json(self, transport, session):
        session.post.return_value = response(503, ValueError("no json"), reason="Service Unavailable")

        result = transport.send(outbound())

        assert result.error == "HTTP 503: Service Unavailable"

    def test_timeout(self, transport, session):
        session.post.side_effect = requests.exceptions.Timeout("slow")

        result = transport.send(outbound())

        assert result.success is False
        assert "timed out after 10 seconds" in result.error

    def test_connection_error(self, transport, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        result = transport.send(outbound())

        assert result.success is False
        assert "failed" in result.error

    def test_unparseable_body(self, transport, session):
        session.post.return_value = response(200, ValueError("bad json"))

        result = transport.send(outbound())

        assert result.success is False
        assert "Failed to parse JSON" in result.error

    def test_missing_id(self, transport, session):
        session.post.return_value = response(body={})

        assert transport.send(outbound()).success is False


class TestSendBulk:
    def test_results_matched_by_position(self, transport, session):
        session.post.return_value = response(body={"data": [{"id": "re_1"}, {"id": "re_2"}]})

        results = transport.send_bulk([outbound("m1"), outbound("m2", "bob@example.com")])

        assert [(r.id, r.message_id) for r in results] == [("m1", "re_1"), ("m2", "re_2")]
        assert session.post.call_args.args[0] == "https://api.resend.com/emails/batch"
        assert len(session.post.call_args.kwargs["json"]) == 2

    def test_short_response_fails_unmatched(self, transport, session):
        session.post.return_value = response(body={"data": [{"id": "re_1"}]})

        results = transport.send_bulk([outbound("m1"), outbound("m2")])

        assert [r.success for r in results] == [True, False]

    def test_http_error_fails_whole_chunk(self, transport, session):
        session.post.return_value = response(500, {"message": "boom"})

        results = transport.send_bulk([outbound("m1"), outbound("m2")])

        assert not any(r.success for r in results)
        assert results[0].error == "HTTP 500: boom"

    def test_chunks_large_batches(self, transport, session):
        messages = [outbound(f"m{i}") for i in range(MAX_BATCH_SIZE + 5)]
        session.post.side_effect = [
            response(body={"data": [{"id": f"a{i}"} for i in range(MAX_BATCH_SIZE)]}),
            response(body={"data": [{"id": f"b{i}"} for i in range(5)]}),
        ]

        results = transport.send_bulk(messages)

        assert session.post.call_count == 2
        assert len(results) == MAX_BATCH_SIZE + 5
        assert all(r.success for r in results)
        assert results[-1].message_id == "b4"

    def test_close(self, transport, session):
        transport.close()
        session.close.assert_called_once()
