"""
Unit tests for endpoint validation and report delivery.
"""

from __future__ import annotations

import json
import socket
import threading
from unittest.mock import patch

import pytest
import requests

from support_monitor.errors import DeliveryFailed, InvalidEndpoint
from support_monitor.uploader import (
    REQUEST_TIMEOUT,
    Outcome,
    Uploader,
    resolve_host,
    validate_endpoint,
)


PUBLIC_ADDRESS = "93.184.216.34"


def public(host):
    return [PUBLIC_ADDRESS]


class TestValidateEndpoint:
    """Test endpoint validation."""

    def test_accepts_public_https(self):
        url = "https://support.example.com/api/report"
        assert validate_endpoint(url, resolver=public) == url

    @pytest.mark.parametrize(
        "url",
        [
            "http://localhost/report",
            "http://api.localhost/report",
            "http://127.0.0.1/report",
            "http://10.0.0.5/report",
            "http://192.168.1.10/report",
            "http://[::1]/report",
            "http://0.0.0.0/report",
        ],
    )
    def test_rejects_loopback_and_internal(self, url):
        with pytest.raises(InvalidEndpoint):
            validate_endpoint(url, resolver=public)

    def test_localhost_allowed_with_override(self):
        url = "http://localhost:8000/report"
        assert validate_endpoint(url, allow_loopback=True) == url

    def test_rejects_name_resolving_to_internal_address(self):
        with pytest.raises(InvalidEndpoint, match="internal address"):
            validate_endpoint("https://intranet.example.com/", resolver=lambda h: ["172.16.0.4"])

    def test_rejects_name_with_any_internal_address(self):
        with pytest.raises(InvalidEndpoint, match="internal address"):
            validate_endpoint(
                "https://support.example.com/",
                resolver=lambda h: [PUBLIC_ADDRESS, "10.1.2.3"],
            )

    def test_accepts_ipv6_only_host(self):
        url = "https://support.example.com/api"
        assert validate_endpoint(url, resolver=lambda h: ["2606:2800:220:1::1946"]) == url

    def test_rejects_ipv6_loopback_resolution(self):
        with pytest.raises(InvalidEndpoint, match="internal address"):
            validate_endpoint("https://support.example.com/", resolver=lambda h: ["::1"])

    def test_rejects_name_without_addresses(self):
        with pytest.raises(InvalidEndpoint, match="could not resolve"):
            validate_endpoint("https://support.example.com/", resolver=lambda h: [])

    def test_rejects_unresolvable_host(self):
        def fail(host):
            raise socket.gaierror("Name or service not known")

        with pytest.raises(InvalidEndpoint, match="could not resolve"):
            validate_endpoint("https://nowhere.invalid/", resolver=fail)

    @pytest.mark.parametrize(
        "url",
        [None, "", "ftp://support.example.com/", "not a url", "https:///path-only"],
    )
    def test_rejects_malformed(self, url):
        with pytest.raises(InvalidEndpoint):
            validate_endpoint(url, resolver=public)

    def test_rejects_credentials(self):
        with pytest.raises(InvalidEndpoint):
            validate_endpoint("https://user:pw@support.example.com/", resolver=public)

    def test_port_restrictions(self):
        assert validate_endpoint("https://support.example.com:8080/", resolver=public)
        with pytest.raises(InvalidEndpoint, match="port"):
            validate_endpoint("https://support.example.com:9000/", resolver=public)


class TestBlockingDelivery:
    """Test deliver(blocking=True)."""

    def test_success_on_204(self, uploader, sample_report, response_factory):
        with patch.object(uploader.session, "post", return_value=response_factory(204)) as mock_post:
            result = uploader.deliver("https://support.example.com/api", sample_report)

        assert result.success
        assert result.outcome is Outcome.SUCCESS
        assert result.status_code == 204
        args, kwargs = mock_post.call_args
        assert args[0] == "https://support.example.com/api"
        assert kwargs["timeout"] == REQUEST_TIMEOUT == 30
        assert json.loads(kwargs["data"]) == sample_report.to_dict()

    def test_content_type_header(self, uploader):
        assert uploader.session.headers["Content-Type"] == "application/json"

    def test_server_error_is_delivery_failed(self, uploader, sample_report, response_factory):
        response = response_factory(500, '{"error": "Internal server error"}')
        with patch.object(uploader.session, "post", return_value=response):
            result = uploader.deliver("https://support.example.com/api", sample_report)

        assert not result.success
        assert result.outcome is Outcome.FAILURE
        assert isinstance(result.error, DeliveryFailed)
        assert result.error.status_code == 500
        assert result.error.body == '{"error": "Internal server error"}'
        assert result.body == '{"error": "Internal server error"}'

    def test_redirect_status_is_not_success(self, uploader, sample_report, response_factory):
        with patch.object(uploader.session, "post", return_value=response_factory(301)):
            result = uploader.deliver("https://support.example.com/api", sample_report)

        assert isinstance(result.error, DeliveryFailed)

    @pytest.mark.parametrize(
        "exc",
        [
            requests.exceptions.Timeout("timed out"),
            requests.exceptions.ConnectionError("refused"),
        ],
    )
    def test_network_errors_returned_not_raised(self, uploader, sample_report, exc):
        with patch.object(uploader.session, "post", side_effect=exc):
            result = uploader.deliver("https://support.example.com/api", sample_report)

        assert isinstance(result.error, DeliveryFailed)
        assert result.error.status_code is None

    def test_raise_for_error(self, uploader, sample_report, response_factory):
        with patch.object(uploader.session, "post", return_value=response_factory(500)):
            result = uploader.deliver("https://support.example.com/api", sample_report)

        with pytest.raises(DeliveryFailed):
            result.raise_for_error()

    def test_invalid_endpoint_not_posted(self, uploader, sample_report):
        with patch.object(uploader.session, "post") as mock_post:
            result = uploader.deliver("http://localhost/api", sample_report)

        mock_post.assert_not_called()
        assert isinstance(result.error, InvalidEndpoint)

    def test_loopback_allowed_by_config(self, config, sample_report, response_factory):
        config.allow_loopback = True
        uploader = Uploader(config)

        with patch.object(uploader.session, "post", return_value=response_factory(200)):
            result = uploader.deliver("http://localhost/api", sample_report)

        assert result.success


class TestNonBlockingDelivery:
    """Test deliver(blocking=False)."""

    def test_returns_provisional_success(self, uploader, sample_report, response_factory):
        release = threading.Event()

        def slow_post(*args, **kwargs):
            release.wait(5)
            return response_factory(500)

        with patch("requests.Session.post", side_effect=slow_post) as mock_post:
            result = uploader.deliver("https://support.example.com/api", sample_report, blocking=False)
            assert result.success
            assert result.outcome is Outcome.UNKNOWN
            assert result.status_code is None
            release.set()
            uploader.wait(5)

        mock_post.assert_called_once()

    def test_background_network_error_is_swallowed(self, uploader, sample_report):
        with patch("requests.Session.post", side_effect=requests.exceptions.ConnectionError("down")):
            result = uploader.deliver("https://support.example.com/api", sample_report, blocking=False)
            uploader.wait(5)

        assert result.error is None

    def test_background_post_uses_own_session(self, uploader, sample_report, response_factory):
        with patch("requests.Session.post", return_value=response_factory(200)) as mock_post:
            with patch.object(uploader.session, "post") as shared_post:
                uploader.deliver("https://support.example.com/api", sample_report, blocking=False)
                uploader.wait(5)

        shared_post.assert_not_called()
        mock_post.assert_called_once()

    def test_invalid_endpoint_still_reported(self, uploader, sample_report):
        result = uploader.deliver("http://127.0.0.1/api", sample_report, blocking=False)

        assert isinstance(result.error, InvalidEndpoint)


class TestResolveHost:
    """Test DNS resolution through getaddrinfo."""

    def test_returns_ipv4_and_ipv6_addresses(self):
        infos = [
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", (PUBLIC_ADDRESS, 0)),
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2606:2800:220:1::1946", 0, 0, 0)),
        ]
        with patch("support_monitor.uploader.socket.getaddrinfo", return_value=infos):
            assert resolve_host("support.example.com") == [PUBLIC_ADDRESS, "2606:2800:220:1::1946"]

    def test_strips_ipv6_scope(self):
        infos = [(socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("fe80::1%eth0", 0, 0, 2))]
        with patch("support_monitor.uploader.socket.getaddrinfo", return_value=infos):
            assert resolve_host("router.example.com") == ["fe80::1"]

    def test_default_resolver_accepts_aaaa_only_host(self):
        infos = [(socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2606:2800:220:1::1946", 0, 0, 0))]
        url = "https://support.example.com/api"
        with patch("support_monitor.uploader.socket.getaddrinfo", return_value=infos):
            assert validate_endpoint(url) == url
