import pytest

import google_identity
from auth_errors import AuthError
from google_identity import verify_google_id_token

CLIENT_ID = "alumni-web.apps.googleusercontent.com"


def _claims(**overrides):
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "109876543210",
        "email": "Rahima@Example.com",
        "email_verified": "true",
        "name": "Rahima Khatun",
    }
    claims.update(overrides)
    return claims


@pytest.fixture
def tokeninfo(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_ID", CLIENT_ID)
    response = {"claims": _claims()}
    monkeypatch.setattr(google_identity, "_fetch_tokeninfo", lambda id_token: response["claims"])
    return response


def test_valid_token(tokeninfo):
    identity = verify_google_id_token("id-token")
    assert identity.email == "rahima@example.com"
    assert identity.sub == "109876543210"
    assert identity.email_verified is True


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"iss": "https://evil.example.com"}, "auth/invalid-id-token"),
        ({"aud": "another-app.apps.googleusercontent.com"}, "auth/invalid-id-token"),
        ({"email_verified": "false"}, "auth/email-not-verified"),
        ({"email_verified": None}, "auth/email-not-verified"),
        ({"email": ""}, "auth/missing-email"),
    ],
)
def test_rejected_claims(tokeninfo, overrides, code):
    tokeninfo["claims"] = _claims(**overrides)
    with pytest.raises(AuthError) as exc:
        verify_google_id_token("id-token")
    assert exc.value.code == code


def test_empty_token_is_rejected():
    with pytest.raises(AuthError) as exc:
        verify_google_id_token("")
    assert exc.value.code == "auth/invalid-id-token"
