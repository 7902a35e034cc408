import asyncio
from dataclasses import dataclass
from typing import List, Optional

import requests
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from identity_service.features.auth.exceptions import InvalidExternalTokenError
from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger

logger = get_logger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class ExternalIdentity:
    subject_id: str
    email: str
    display_name: Optional[str]
    email_verified: bool
    picture: Optional[str] = None


class _TimeoutRequest(google_requests.Request):
    """google-auth transport whose HTTP calls (certificate fetches) share one timeout."""

    def __init__(self, timeout: float, session: Optional[requests.Session] = None):
        super().__init__(session=session)
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url, method=method, body=body, headers=headers, timeout=timeout or self._timeout, **kwargs
        )


class GoogleIdentityVerifier:
    """
    Verifies Google ID tokens: signature against Google's current keys,
    audience, issuer, expiry and a provider-verified email.

    Every failure, including timeouts and network errors, becomes
    ``InvalidExternalTokenError``.
    """

    def __init__(
        self,
        client_ids: List[str],
        timeout_seconds: float = 5.0,
        clock_skew_seconds: int = 10,
    ):
        self.client_ids = [client_id for client_id in client_ids if client_id]
        self.timeout_seconds = timeout_seconds
        self.clock_skew_seconds = clock_skew_seconds

    @classmethod
    def from_settings(cls) -> "GoogleIdentityVerifier":
        return cls(
            [settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_ID_ANDROID],
            timeout_seconds=settings.GOOGLE_TOKEN_TIMEOUT_SECONDS,
            clock_skew_seconds=settings.GOOGLE_CLOCK_SKEW_SECONDS,
        )

    async def verify(self, token: str) -> ExternalIdentity:
        if not self.client_ids:
            logger.error("Google sign-in attempted but no Google client id is configured")
            raise InvalidExternalTokenError()
        if not token:
            raise InvalidExternalTokenError()

        try:
            idinfo = await asyncio.wait_for(
                asyncio.to_thread(self._verify_signature, token),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Google token verification timed out after {self.timeout_seconds}s")
            raise InvalidExternalTokenError()
        except Exception as e:
            # Bad signature, wrong audience, expired, unreachable key endpoint...
            logger.warning(f"Google token rejected: {type(e).__name__}: {e}")
            raise InvalidExternalTokenError() from e

        return self._to_identity(idinfo)

    def _verify_signature(self, token: str) -> dict:
        audience = self.client_ids[0] if len(self.client_ids) == 1 else self.client_ids
        return id_token.verify_oauth2_token(
            token,
            _TimeoutRequest(self.timeout_seconds),
            audience,
            clock_skew_in_seconds=self.clock_skew_seconds,
        )

    def _to_identity(self, idinfo: dict) -> ExternalIdentity:
        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            logger.warning(f"Google token rejected: unexpected issuer {idinfo.get('iss')}")
            raise InvalidExternalTokenError()

        subject_id = idinfo.get("sub")
        email = idinfo.get("email")
        if not subject_id or not email:
            logger.warning("Google token rejected: missing subject or email claim")
            raise InvalidExternalTokenError()

        # Google sends a bool; some older tokens carry the string "true"
        email_verified = idinfo.get("email_verified") in (True, "true")
        if not email_verified:
            logger.warning(f"Google token rejected: email not verified by provider for subject {subject_id}")
            raise InvalidExternalTokenError("Google account email is not verified")

        return ExternalIdentity(
            subject_id=str(subject_id),
            email=email,
            display_name=idinfo.get("name"),
            email_verified=True,
            picture=idinfo.get("picture"),
        )
