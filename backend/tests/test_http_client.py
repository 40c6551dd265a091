"""
Unit tests for the authenticated upstream client.

Run: pytest backend/tests/test_http_client.py -v
"""
from __future__ import annotations

import httpx
import pytest

from shared.errors import MissingCredential, UpstreamUnavailable
from shared.utils.http_client import AUTH_HEADER, UpstreamClient

from factories import BASE_URL, UpstreamRecorder, json_response, matches_body


@pytest.mark.asyncio
async def test_injects_token_and_base_url() -> None:
    recorder = UpstreamRecorder()
    client = recorder.client(token="secret")
    try:
        resp = await client.fetch_upstream("/competitions/PL/matches", {"matchday": 14, "season": None})
    finally:
        await client.close()

    assert resp.status == 200
    request = recorder.requests[0]
    assert request.headers[AUTH_HEADER] == "secret"
    assert str(request.url) == f"{BASE_URL}/competitions/PL/matches?matchday=14"


@pytest.mark.asyncio
async def test_missing_credential_makes_no_request() -> None:
    recorder = UpstreamRecorder()
    client = recorder.client(token="")
    with pytest.raises(MissingCredential):
        await client.fetch_upstream("/competitions/PL/matches")
    assert recorder.calls == 0
    assert client.has_credential is False


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised() -> None:
    recorder = UpstreamRecorder(lambda request: json_response({"message": "Too many requests"}, 429))
    client = recorder.client()
    try:
        resp = await client.fetch_upstream("/competitions/PL/matches")
    finally:
        await client.close()
    assert resp.status == 429
    assert resp.ok is False


@pytest.mark.asyncio
async def test_transport_error_becomes_upstream_unavailable() -> None:
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = UpstreamRecorder(boom).client()
    try:
        with pytest.raises(UpstreamUnavailable) as excinfo:
            await client.fetch_upstream("/competitions/PL/matches")
    finally:
        await client.close()
    assert "connection refused" in str(excinfo.value)
    assert excinfo.value.path == "/competitions/PL/matches"


@pytest.mark.asyncio
async def test_sequence_params_keep_repeats() -> None:
    recorder = UpstreamRecorder(lambda request: json_response(matches_body()))
    client = recorder.client()
    try:
        await client.fetch_upstream("/matches", [("status", "SCHEDULED"), ("status", "TIMED")])
    finally:
        await client.close()
    assert recorder.requests[0].url.params.get_list("status") == ["SCHEDULED", "TIMED"]


def test_from_settings_reads_timeouts() -> None:
    from shared.config import Settings

    client = UpstreamClient.from_settings(Settings(football_data_token="t", upstream_timeout_s=3))
    assert client.has_credential
