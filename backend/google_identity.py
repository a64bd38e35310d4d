import json
import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request as UrlRequest, urlopen

from auth_errors import AuthError

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass
class GoogleIdentity:
    sub: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    picture: Optional[str] = None


def _fetch_tokeninfo(id_token: str) -> dict:
    url = f"{GOOGLE_TOKENINFO_URL}?{urlencode({'id_token': id_token})}"
    request = UrlRequest(url, headers={"Accept": "application/json"})
    try:
        with urlopen(request, timeout=8) as response:
            return json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        logger.info("Google rejected ID token: HTTP %s", exc.code)
        raise AuthError("auth/invalid-id-token") from exc
    except (URLError, TimeoutError) as exc:
        logger.warning("Google token info unreachable: %s", exc)
        raise AuthError("auth/network-request-failed") from exc


def verify_google_id_token(id_token: str) -> GoogleIdentity:
    if not id_token:
        raise AuthError("auth/invalid-id-token")

    claims = _fetch_tokeninfo(id_token)
    if claims.get("iss") not in GOOGLE_ISSUERS:
        raise AuthError("auth/invalid-id-token")

    client_id = os.environ.get("GOOGLE_CLIENT_ID")
    if client_id and claims.get("aud") != client_id:
        raise AuthError("auth/invalid-id-token")

    email = str(claims.get("email") or "").strip().lower()
    if not email or not claims.get("sub"):
        raise AuthError("auth/missing-email")
    if str(claims.get("email_verified", "")).lower() != "true":
        raise AuthError("auth/email-not-verified")

    return GoogleIdentity(
        sub=str(claims["sub"]),
        email=email,
        email_verified=True,
        name=claims.get("name"),
        picture=claims.get("picture"),
    )
