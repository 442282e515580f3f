"""
Tests for the unrestrict client against a fake debrid API.
"""

import pytest

from debrid_dl.api.client import DebridAPIClient
from debrid_dl.exceptions import (
    MalformedResponseError,
    UnrestrictError,
    UnrestrictStatusError,
    UnrestrictTimeoutError,
    UnrestrictTransportError,
)


@pytest.fixture
async def client(services):
    api_client = DebridAPIClient(services.api_base_url, "secret-token", request_timeout=2)
    yield api_client
    await api_client.close()


async def test_returns_download_url(services, client):
    link = await client.unrestrict_link("http://example.test/a.bin")

    assert link.download == services.url("/cdn/a.bin")
    assert link.filename is None


async def test_sends_bearer_token_and_form_body(services, client):
    await client.unrestrict_link("http://example.test/a.bin", "s3cret")

    request = services.requests[-1]
    assert request["authorization"] == "Bearer secret-token"
    assert request["form"] == {"link": "http://example.test/a.bin", "password": "s3cret"}


async def test_password_omitted_when_empty(services, client):
    await client.unrestrict_link("http://example.test/a.bin", "")

    assert services.requests[-1]["form"] == {"link": "http://example.test/a.bin"}


async def test_filename_passed_through(services, client):
    services.filename = "Real Name.mkv"

    link = await client.unrestrict_link("http://example.test/abc")

    assert link.filename == "Real Name.mkv"


async def test_empty_url_rejected(client):
    with pytest.raises(ValueError):
        await client.unrestrict_link("")


async def test_non_2xx_status(services, client):
    services.unrestrict_status = 401

    with pytest.raises(UnrestrictStatusError) as exc_info:
        await client.unrestrict_link("http://example.test/a.bin")

    assert exc_info.value.status == 401
    assert exc_info.value.url == "http://example.test/a.bin"


@pytest.mark.parametrize(
    "body",
    ["not json at all", "[1, 2, 3]", '{"link": "x"}', '{"download": 42}', '{"download": ""}'],
)
async def test_malformed_body(services, client, body):
    services.unrestrict_body = body

    with pytest.raises(MalformedResponseError) as exc_info:
        await client.unrestrict_link("http://example.test/a.bin")

    assert exc_info.value.url == "http://example.test/a.bin"


async def test_undecodable_body_is_malformed(services, client):
    services.unrestrict_body = b'\xff\xfe{"download": 1}'

    with pytest.raises(MalformedResponseError) as exc_info:
        await client.unrestrict_link("http://example.test/a.bin")

    assert exc_info.value.url == "http://example.test/a.bin"


async def test_undecodable_error_page_keeps_status(services, client):
    services.unrestrict_status = 503
    services.unrestrict_body = b"<html>Dienst nicht verf\xfcgbar</html>"

    with pytest.raises(UnrestrictStatusError) as exc_info:
        await client.unrestrict_link("http://example.test/a.bin")

    assert exc_info.value.status == 503


async def test_timeout(services):
    services.unrestrict_delay = 1.0
    api_client = DebridAPIClient(services.api_base_url, "t", request_timeout=0.1)
    try:
        with pytest.raises(UnrestrictTimeoutError) as exc_info:
            await api_client.unrestrict_link("http://example.test/a.bin")
    finally:
        await api_client.close()

    assert exc_info.value.url == "http://example.test/a.bin"


async def test_connection_refused(unused_tcp_port):
    api_client = DebridAPIClient(f"http://127.0.0.1:{unused_tcp_port}/", "t", 2)
    try:
        with pytest.raises(UnrestrictTransportError):
            await api_client.unrestrict_link("http://example.test/a.bin")
    finally:
        await api_client.close()


def test_errors_share_a_base_class():
    for cls in (
        UnrestrictTimeoutError,
        UnrestrictTransportError,
        UnrestrictStatusError,
        MalformedResponseError,
    ):
        assert issubclass(cls, UnrestrictError)
