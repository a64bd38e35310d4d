"""Password hashing and the member JWT session."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import bcrypt
import hashlib
import os
from dotenv import load_dotenv
from pathlib import Path
from database import get_db
from models import AuthAccount

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

TOKEN_USER_TYPE = "member"
WEAK_SECRETS = {'changeme', 'change_me', 'secret', 'jwt_secret', 'password', 'default_secret_key'}


def _load_jwt_secret() -> str:
    secret = (os.environ.get('JWT_SECRET_KEY') or '').strip()
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY must be set')
    if len(secret) < 32 or secret.lower() in WEAK_SECRETS:
        raise RuntimeError('JWT_SECRET_KEY must be a random value of at least 32 characters')
    return secret


SECRET_KEY = _load_jwt_secret()
ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_TTL = timedelta(minutes=int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', 30)))
REFRESH_TOKEN_TTL = timedelta(days=int(os.environ.get('REFRESH_TOKEN_EXPIRE_DAYS', 7)))

security = HTTPBearer()


def _prehash(password: str) -> bytes:
    # bcrypt truncates at 72 bytes, so the digest is what gets hashed
    return hashlib.sha256(str(password).encode('utf-8')).digest()


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_prehash(plain_password), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def _encode(uid: str, token_type: str, ttl: timedelta) -> str:
    claims = {
        "sub": uid,
        "user_type": TOKEN_USER_TYPE,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + ttl,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def issue_token_pair(uid: str) -> Tuple[str, str]:
    """Access and refresh token for one account uid."""
    return _encode(uid, "access", ACCESS_TOKEN_TTL), _encode(uid, "refresh", REFRESH_TOKEN_TTL)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> Dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized("Could not validate credentials")


async def get_current_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> AuthAccount:
    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")
    if payload.get("user_type") != TOKEN_USER_TYPE:
        raise _unauthorized("Invalid token user type")

    uid = payload.get("sub")
    account = db.query(AuthAccount).filter(AuthAccount.uid == uid).first() if uid else None
    if account is None:
        raise _unauthorized("Account not found")
    return account
