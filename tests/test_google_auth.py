"""
Test Google identity lookup
"""
import httpx
import pytest

from clipscript.auth import verify_google_token
from conftest import run


def userinfo_client(status_code=200, payload=None):
    def handler(request):
        assert request.headers["Authorization"] == "Bearer token-123"
        return httpx.Response(status_code, json=payload or {})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_verify_google_token_returns_identity():
    async def scenario():
        async with userinfo_client(payload={
            "email": "Creator@Gmail.com",
            "name": "Creator",
            "picture": "https://example.com/me.png",
        }) as client:
            return await verify_google_token("token-123", client)

    identity = run(scenario())
    assert identity.email == "creator@gmail.com"
    assert identity.name == "Creator"
    assert identity.avatar == "https://example.com/me.png"
    assert identity.provider == "google"


def test_rejected_token_raises():
    async def scenario():
        async with userinfo_client(status_code=401, payload={"error": "invalid_token"}) as client:
            await verify_google_token("token-123", client)

    with pytest.raises(httpx.HTTPStatusError):
        run(scenario())
