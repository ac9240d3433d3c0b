import logging
import os
from pathlib import Path
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from menuboard.core.config import MAX_IMAGE_SIZE_BYTES
from menuboard.services.errors import UploadFailure, ValidationFailure

logger = logging.getLogger(__name__)


def _get_required_env(var_name: str) -> str:
    value = os.getenv(var_name, "").strip()
    if not value:
        raise RuntimeError(f"Missing required environment variable: {var_name}")
    return value


def _get_r2_client():
    r2_account_id = _get_required_env("R2_ACCOUNT_ID")
    r2_access_key_id = _get_required_env("R2_ACCESS_KEY_ID")
    r2_secret_access_key = _get_required_env("R2_SECRET_ACCESS_KEY")

    import boto3

    return boto3.client(
        "s3",
        endpoint_url=f"https://{r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=r2_access_key_id,
        aws_secret_access_key=r2_secret_access_key,
        region_name="auto",
    )


def _validate_image(file: UploadFile) -> None:
    if not file.filename:
        raise ValidationFailure("Invalid file")
    content_type = (getattr(file, "content_type", None) or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationFailure("Only image files are accepted")

    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    if size > MAX_IMAGE_SIZE_BYTES:
        raise ValidationFailure(f"Image exceeds {MAX_IMAGE_SIZE_BYTES // (1024 * 1024)}MB")


def build_object_key(shop_id: int, filename: str | None) -> str:
    extension = Path(filename or "").suffix.lower()
    return "/".join(["shops", str(shop_id), "items", f"{uuid4().hex}{extension}"])


def upload_image(file: UploadFile, shop_id: int) -> str:
    """Store an item image under a random name and return its public URL."""
    _validate_image(file)
    object_key = build_object_key(shop_id, file.filename)

    try:
        r2_bucket_name = _get_required_env("R2_BUCKET_NAME")
        r2_public_url = _get_required_env("R2_PUBLIC_URL").rstrip("/")
        _get_r2_client().upload_fileobj(
            file.file,
            r2_bucket_name,
            object_key,
            ExtraArgs={"ContentType": file.content_type},
        )
    except (RuntimeError, BotoCoreError, ClientError) as exc:
        logger.error("image upload failed shop_id=%s key=%s: %s", shop_id, object_key, exc)
        raise UploadFailure() from exc

    return f"{r2_public_url}/{object_key}"
