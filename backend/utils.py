"""S3 image storage for profile photos and event banners.

Objects live under ``profiles/<uid>/`` and ``events/<event_id>/``; stored
URLs are the public virtual-host URLs of the bucket.
"""

import os
import logging
import uuid
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import unquote, urlparse
from fastapi import HTTPException, status, UploadFile
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("AWS_REGION")
S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
S3_ACCESS_KEY = os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
S3_SECRET_KEY = os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")

IMAGE_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_IMAGE_BYTES = 5 * 1024 * 1024
PRESIGN_TTL_SECONDS = 600

S3_CLIENT = None
if AWS_REGION and S3_BUCKET_NAME and S3_ACCESS_KEY and S3_SECRET_KEY:
    S3_CLIENT = boto3.client(
        "s3",
        region_name=AWS_REGION,
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        endpoint_url=f"https://s3.{AWS_REGION}.amazonaws.com",
        config=Config(signature_version="s3v4", s3={"addressing_style": "virtual"}),
    )


def profile_photo_prefix(uid: str) -> str:
    return f"profiles/{uid}"


def event_banner_prefix(event_id: int) -> str:
    return f"events/{event_id}"


def _client():
    if S3_CLIENT is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image storage is not configured")
    return S3_CLIENT


def _public_url(key: str) -> str:
    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"


def _key_from_url(url: Optional[str]) -> Optional[str]:
    if not url or not S3_BUCKET_NAME:
        return None
    parsed = urlparse(url)
    host = (parsed.netloc or "").lower()
    key = unquote((parsed.path or "").lstrip("/"))
    bucket = S3_BUCKET_NAME.lower()
    if key and (host == f"{bucket}.s3.amazonaws.com" or host.startswith(f"{bucket}.s3.")):
        return key
    return None


def is_owned_upload_url(url: Optional[str], prefix: str) -> bool:
    key = _key_from_url(url)
    return bool(key and key.startswith(prefix.rstrip("/") + "/"))


def _new_key(prefix: str, filename: str) -> str:
    return f"{prefix.rstrip('/')}/{uuid.uuid4().hex}{Path(filename or '').suffix.lower()}"


def _check_image_type(content_type: Optional[str]) -> str:
    if content_type not in IMAGE_CONTENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only JPEG, PNG and WebP images are allowed")
    return content_type


def upload_image(file: UploadFile, prefix: str) -> str:
    """Store an uploaded image and return its public URL."""
    client = _client()
    content_type = _check_image_type(file.content_type)
    data = file.file.read(MAX_IMAGE_BYTES + 1)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image must be 5MB or smaller")

    key = _new_key(prefix, file.filename or "")
    try:
        client.put_object(Bucket=S3_BUCKET_NAME, Key=key, Body=data, ContentType=content_type)
    except (BotoCoreError, ClientError) as exc:
        logger.error("S3 upload of %s failed: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Upload failed") from exc
    return _public_url(key)


def presign_image_upload(prefix: str, filename: str, content_type: str) -> Dict[str, str]:
    """Presigned PUT for a browser-side upload, confirmed later by URL."""
    client = _client()
    _check_image_type(content_type)
    key = _new_key(prefix, filename)
    try:
        upload_url = client.generate_presigned_url(
            "put_object",
            Params={"Bucket": S3_BUCKET_NAME, "Key": key, "ContentType": content_type},
            ExpiresIn=PRESIGN_TTL_SECONDS,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Presigning %s failed: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to create upload URL") from exc
    return {
        "upload_url": upload_url,
        "public_url": _public_url(key),
        "key": key,
        "content_type": content_type,
    }


def delete_image(url: Optional[str]) -> bool:
    """Remove a previously stored image; failures only get logged."""
    key = _key_from_url(url)
    if not key or S3_CLIENT is None:
        return False
    try:
        S3_CLIENT.delete_object(Bucket=S3_BUCKET_NAME, Key=key)
    except (BotoCoreError, ClientError) as exc:
        logger.warning("S3 delete failed for %s: %s", key, exc)
        return False
    return True
