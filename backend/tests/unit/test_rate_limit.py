"""
Unit tests for rate-limit keys and route classes.
"""

import pytest
from starlette.requests import Request

from api.middleware.rate_limit import RATE_LIMITS, client_ip, get_rate_limit


def _request(headers: dict[str, str], client_host: str = "10.0.0.5") -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/webhooks/clerk",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": (client_host, 443),
    })


def test_forwarded_public_ip_is_used():
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert client_ip(request) == "203.0.113.7"


def test_real_ip_header_used_when_forwarded_is_private():
    request = _request({"X-Forwarded-For": "192.168.1.4", "X-Real-IP": "198.51.100.2"})
    assert client_ip(request) == "198.51.100.2"


@pytest.mark.parametrize("header", ["not-an-ip", "127.0.0.1", "169.254.0.1"])
def test_untrusted_forwarded_values_fall_back_to_peer(header):
    assert client_ip(_request({"X-Forwarded-For": header})) == "10.0.0.5"


def test_unknown_class_gets_default_limit():
    assert get_rate_limit("webhook") == "300/minute"
    assert get_rate_limit("nope") == RATE_LIMITS["default"]
