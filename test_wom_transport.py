"""Tests for the registry HTTP client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from wom_transport import CREATE_PATH, VERIFY_PATH, Transport, TransportError


def _response(status=200, content=b'{"payload":"abc"}', json_value=None):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    if json_value is None:
        resp.json.return_value = {"payload": "abc"}
    else:
        resp.json.side_effect = json_value
    return resp


def _transport(resp=None, exc=None, timeout=(1.0, 2.0)):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    if exc is not None:
        session.post.side_effect = exc
    else:
        session.post.return_value = resp
    return Transport("http://wom.example/", timeout=timeout, session=session), session


def test_post_sends_json_with_timeout():
    transport, session = _transport(_response())
    body = transport.post_json(CREATE_PATH, {"sourceId": 2})
    assert body == {"payload": "abc"}
    session.post.assert_called_once_with(
        "http://wom.example/api/v1/voucher/create",
        json={"sourceId": 2},
        timeout=(1.0, 2.0),
    )


def test_non_200_status_is_fatal():
    transport, _ = _transport(_response(status=400))
    with pytest.raises(TransportError) as info:
        transport.post_json(CREATE_PATH, {})
    assert info.value.status_code == 400
    assert info.value.url.endswith(CREATE_PATH)


def test_other_success_codes_are_still_rejected():
    transport, _ = _transport(_response(status=204, content=b""))
    with pytest.raises(TransportError):
        transport.post_json(VERIFY_PATH, {}, expect_body=False)


def test_timeout_becomes_transport_error():
    transport, _ = _transport(exc=requests.Timeout("slow"))
    with pytest.raises(TransportError) as info:
        transport.post_json(CREATE_PATH, {})
    assert info.value.status_code is None
    assert isinstance(info.value.__cause__, requests.Timeout)


def test_connection_error_becomes_transport_error():
    transport, _ = _transport(exc=requests.ConnectionError("refused"))
    with pytest.raises(TransportError):
        transport.post_json(CREATE_PATH, {})


def test_verify_ignores_body():
    resp = _response(content=b"OK", json_value=ValueError("not json"))
    transport, _ = _transport(resp)
    assert transport.post_json(VERIFY_PATH, {}, expect_body=False) is None


def test_body_that_is_not_json():
    resp = _response(content=b"<html>", json_value=ValueError("not json"))
    transport, _ = _transport(resp)
    with pytest.raises(TransportError):
        transport.post_json(CREATE_PATH, {})


def test_empty_body_returns_none():
    transport, _ = _transport(_response(content=b""))
    assert transport.post_json(CREATE_PATH, {}) is None


def test_context_manager_closes_session():
    transport, session = _transport(_response())
    with transport as t:
        assert t is transport
    session.close.assert_called_once_with()
