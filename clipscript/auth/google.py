"""Google identity lookup for sign-in."""
from typing import Optional

import httpx

from clipscript.config import get_settings
from clipscript.db.models import ExternalIdentity


async def get_google_user_info(
    access_token: str,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """Get user info from Google using access token."""
    settings = get_settings()
    if client is None:
        async with httpx.AsyncClient(timeout=30.0) as own_client:
            return await get_google_user_info(access_token, own_client)

    response = await client.get(
        settings.google_userinfo_url,
        headers={"Authorization": f"Bearer {access_token}"},
    )
    response.raise_for_status()
    return response.json()


async def verify_google_token(
    access_token: str,
    client: Optional[httpx.AsyncClient] = None,
) -> ExternalIdentity:
    """Verify a Google access token and return the signed-in identity.

    Returns:
        ExternalIdentity with the account's email, display name and
        profile picture URL.

    Raises:
        httpx.HTTPStatusError if Google rejects the token.
    """
    user_info = await get_google_user_info(access_token, client)

    return ExternalIdentity(
        email=user_info["email"],
        name=user_info.get("name"),
        avatar=user_info.get("picture"),
        provider="google",
    )
