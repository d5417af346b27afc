from __future__ import annotations

from typing import TYPE_CHECKING

from boto3.session import Session
from botocore.config import Config as BotoConfig

if TYPE_CHECKING:
    from botocore.client import BaseClient

    from .settings import StorageSettings


def build_s3_client(settings: StorageSettings) -> BaseClient:
    """Build the S3 client shared by the download and listing services.

    boto3 clients are thread-safe once built; the session is only used here.
    """
    session = Session(
        aws_access_key_id=settings.access_key,
        aws_secret_access_key=settings.secret_key,
        aws_session_token=settings.session_token,
        region_name=settings.region,
    )
    return session.client(
        "s3",
        endpoint_url=settings.endpoint,
        config=BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": settings.max_attempts},
            s3={"addressing_style": settings.addressing_style},
        ),
    )
