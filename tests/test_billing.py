from unittest.mock import Mock

import pytest
import requests

from billing_service import (
    LemonSqueezyClient,
    compute_signature,
    is_premium_for,
    parse_event,
    verify_signature,
)
from errors import ConfigurationError, NotFoundError, UpstreamServiceError, ValidationError

from conftest import webhook_body

BODY = b"The quick brown fox jumps over the lazy dog"
# HMAC-SHA256 of BODY with key "key"
KNOWN_DIGEST = "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"


@pytest.mark.unit
class TestSignature:

    def test_known_digest(self):
        assert compute_signature("key", BODY) == KNOWN_DIGEST

    def test_accepts_valid_signature(self):
        assert verify_signature("key", BODY, KNOWN_DIGEST)

    def test_ignores_case_and_prefix(self):
        assert verify_signature("key", BODY, KNOWN_DIGEST.upper())
        assert verify_signature("key", BODY, "sha256=" + KNOWN_DIGEST)
        assert verify_signature("key", BODY, "SHA256=" + KNOWN_DIGEST.upper())

    def test_rejects_altered_body(self):
        assert not verify_signature("key", BODY + b".", KNOWN_DIGEST)

    def test_rejects_wrong_secret(self):
        assert not verify_signature("other", BODY, KNOWN_DIGEST)

    def test_missing_header_rejected(self):
        assert not verify_signature("key", BODY, None)
        assert not verify_signature("key", BODY, "")

    def test_missing_secret_fails_closed(self):
        with pytest.raises(ConfigurationError):
            verify_signature(None, BODY, KNOWN_DIGEST)


@pytest.mark.unit
class TestParseEvent:

    def test_parses_subscription_event(self):
        event = parse_event(webhook_body("subscription_created", user_id=7, email="a@b.c"))
        assert event.meta.event_name == "subscription_created"
        assert event.embedded_user_id == "7"
        assert event.data.id == "sub_1"
        assert event.data.attributes.customer_id == "9001"

    def test_invalid_json(self):
        with pytest.raises(ValidationError):
            parse_event(b"{not json")

    def test_missing_meta(self):
        with pytest.raises(ValidationError):
            parse_event(b'{"data": {}}')

    @pytest.mark.parametrize("event_name,status,expected", [
        ("subscription_created", "active", True),
        ("subscription_updated", "past_due", False),
        ("subscription_payment_success", "active", True),
        ("subscription_cancelled", "active", False),
    ])
    def test_premium_rule(self, event_name, status, expected):
        assert is_premium_for(parse_event(webhook_body(event_name, status=status))) is expected


def _response(status, json_data=None, text=""):
    resp = Mock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = "Error" if status >= 400 else "OK"
    resp.text = text
    if json_data is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_data
    return resp


@pytest.mark.unit
class TestLemonSqueezyClient:

    def _client(self, http):
        return LemonSqueezyClient("ls-key", store_id="42", base_url="https://ls.test/v1", http=http)

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            LemonSqueezyClient(None)

    def test_create_checkout(self):
        http = Mock()
        http.request.return_value = _response(201, {"data": {"attributes": {"url": "https://pay/x"}}})
        url = self._client(http).create_checkout("777", "a@b.c", 5)

        assert url == "https://pay/x"
        method, endpoint = http.request.call_args.args
        assert method == "POST"
        assert endpoint == "https://ls.test/v1/checkouts"
        kwargs = http.request.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer ls-key"
        data = kwargs["json"]["data"]
        assert data["attributes"]["checkout_data"]["custom"] == {"user_id": "5"}
        assert data["relationships"]["store"]["data"]["id"] == "42"
        assert data["relationships"]["variant"]["data"]["id"] == "777"

    def test_checkout_upstream_error_message(self):
        http = Mock()
        http.request.return_value = _response(422, {"errors": [], "message": "Variant not found"})
        with pytest.raises(UpstreamServiceError) as exc:
            self._client(http).create_checkout("1", "a@b.c", 5)
        assert exc.value.status_code == 422
        assert exc.value.message == "Variant not found"

    def test_checkout_non_json_error(self):
        http = Mock()
        http.request.return_value = _response(500, text="boom")
        with pytest.raises(UpstreamServiceError) as exc:
            self._client(http).create_checkout("1", "a@b.c", 5)
        assert exc.value.message == "Server error: 500 Error. boom"

    def test_network_failure(self):
        http = Mock()
        http.request.side_effect = requests.ConnectionError("down")
        with pytest.raises(UpstreamServiceError):
            self._client(http).create_checkout("1", "a@b.c", 5)

    def test_portal_url(self):
        http = Mock()
        http.request.return_value = _response(200, {
            "data": {"attributes": {"urls": {"customer_portal": "https://portal/1"}}}
        })
        assert self._client(http).get_customer_portal_url("sub_1") == "https://portal/1"
        assert http.request.call_args.args == ("GET", "https://ls.test/v1/subscriptions/sub_1")

    def test_portal_subscription_missing(self):
        http = Mock()
        http.request.return_value = _response(404, {"errors": []})
        with pytest.raises(NotFoundError):
            self._client(http).get_customer_portal_url("sub_1")
