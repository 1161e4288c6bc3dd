"""
Federated sign-in with Google.

The browser obtains a Google ID token; this module checks it against
Google's tokeninfo endpoint and maps the verified identity onto an
AuthAccount (by provider subject first, then by email).
"""

import httpx
import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import AuthAccount, AuthProvider

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


class FederatedAuthError(Exception):
    """Raised when the identity provider rejects or cannot verify a token"""


class IdentityProviderUnavailable(FederatedAuthError):
    """Raised when the identity provider cannot be reached"""


class GoogleIdentityVerifier:
    """Verifies Google ID tokens through the tokeninfo endpoint"""

    def __init__(self, client_id: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.base_url = "https://oauth2.googleapis.com"
        self.transport = transport

    async def verify(self, id_token: str) -> Dict[str, Any]:
        """
        Verify an ID token and return its claims.

        Raises:
            FederatedAuthError: token rejected, wrong audience/issuer,
                unverified email, provider unreachable, or no client id
                configured
        """
        if not self.client_id:
            raise FederatedAuthError("Google sign-in is not configured")

        try:
            async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=10.0) as client:
                response = await client.get("/tokeninfo", params={"id_token": id_token})
        except httpx.HTTPError as e:
            logger.error(f"Google tokeninfo request failed: {e}")
            raise IdentityProviderUnavailable("Identity provider unreachable") from e

        if response.status_code != 200:
            raise FederatedAuthError("Invalid identity token")

        claims = response.json()

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise FederatedAuthError("Unexpected token issuer")
        if claims.get("aud") != self.client_id:
            raise FederatedAuthError("Token was issued for another client")
        if str(claims.get("email_verified", "")).lower() != "true":
            raise FederatedAuthError("Email address is not verified")
        if not claims.get("sub") or not claims.get("email"):
            raise FederatedAuthError("Token is missing identity claims")

        return claims


async def sign_in_with_google(db: AsyncSession, claims: Dict[str, Any]) -> AuthAccount:
    """Find the account for verified Google claims, linking or creating it as needed"""
    subject = claims["sub"]
    email = claims["email"].lower()

    result = await db.execute(
        select(AuthAccount).where(
            AuthAccount.provider_subject == subject
        )
    )
    account = result.scalar_one_or_none()

    if account is None:
        result = await db.execute(
            select(AuthAccount).where(AuthAccount.email == email)
        )
        account = result.scalar_one_or_none()
        if account is not None:
            logger.info(f"Linking Google identity to existing account {email}")
            account.provider_subject = subject
        else:
            logger.info(f"Creating federated account for {email}")
            account = AuthAccount(
                uid=uuid.uuid4().hex,
                email=email,
                hashed_password=None,
                provider=AuthProvider.GOOGLE.value,
                provider_subject=subject,
                is_active=True
            )
            db.add(account)

    account.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(account)
    return account


def get_identity_verifier() -> GoogleIdentityVerifier:
    """FastAPI dependency, overridable in tests"""
    return GoogleIdentityVerifier()
