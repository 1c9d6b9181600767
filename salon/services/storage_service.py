"""Cloudflare R2 image storage for gallery images and profile pictures"""

import logging
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile

from ..config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_PUBLIC_URL, R2_SECRET_ACCESS_KEY
from ..security_utils import sanitize_filename

logger = logging.getLogger(__name__)

# Presigned URL expiration time (7 days, the S3 v4 maximum)
PRESIGNED_URL_EXPIRATION = 7 * 24 * 3600
MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB

ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
    "image/avif": "avif",
}


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def is_storage_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def public_url_for(key: str) -> str:
    """Public CDN URL when a public bucket domain is configured, otherwise a presigned URL"""
    if R2_PUBLIC_URL:
        return f"{R2_PUBLIC_URL.rstrip('/')}/{key}"
    return get_r2_client().generate_presigned_url(
        "get_object",
        Params={"Bucket": R2_BUCKET_NAME, "Key": key, "ResponseContentDisposition": "inline"},
        ExpiresIn=PRESIGNED_URL_EXPIRATION,
    )


async def upload_image(file: UploadFile, folder: str) -> tuple[str, str]:
    """
    Validate and upload an image to R2

    Returns:
        Tuple of (object key, URL to serve it from)
    """
    if not is_storage_configured():
        raise HTTPException(status_code=503, detail="Image storage is not configured")

    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PNG, JPEG, WebP, GIF, HEIC and AVIF images are allowed.",
        )

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(contents) > MAX_IMAGE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds 10MB limit. Your file is {len(contents) / (1024 * 1024):.2f}MB.",
        )

    stem = sanitize_filename(file.filename or "image").rsplit(".", 1)[0][:50]
    key = f"{folder}/{uuid.uuid4()}-{stem}.{ALLOWED_IMAGE_TYPES[file.content_type]}"

    try:
        get_r2_client().put_object(
            Bucket=R2_BUCKET_NAME,
            Key=key,
            Body=contents,
            ContentType=file.content_type,
        )
        url = public_url_for(key)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to upload {key} to R2: {e}")
        raise HTTPException(status_code=502, detail="Failed to upload image") from e

    logger.info(f"✅ Uploaded image to R2: {key}")
    return key, url


def delete_image(key: str) -> None:
    """Delete an object; failures are logged, the database row is the source of truth"""
    if not key or not is_storage_configured():
        return
    try:
        get_r2_client().delete_object(Bucket=R2_BUCKET_NAME, Key=key)
        logger.info(f"🗑️ Deleted R2 object {key}")
    except (BotoCoreError, ClientError) as e:
        logger.warning(f"⚠️ Failed to delete R2 object {key}: {e}")
