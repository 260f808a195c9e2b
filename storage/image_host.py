"""S3 image host for event pictures."""
import base64
import binascii
import logging
import random
import re
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

STOCK_IMAGE_URLS = [
    'https://images.unsplash.com/photo-1523837157348-ffbdaccfc7de',
    'https://images.unsplash.com/photo-1517604931442-7e0c8ed2963c',
    'https://images.unsplash.com/photo-1610890716171-6b1bb98ffd09',
    'https://images.unsplash.com/photo-1501281668745-f7f57925c3b4',
    'https://images.unsplash.com/photo-1496024840928-4c417adf211d',
]

DATA_URL_PATTERN = re.compile(r'^data:(?P<content_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$', re.S)

EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
}


@dataclass
class UploadResult:
    """Outcome of an image upload."""
    url: str
    id: str
    fallback: bool = False

    def to_dict(self) -> dict:
        data = {'url': self.url, 'id': self.id, 'success': True}
        if self.fallback:
            data['fallback'] = True
        return data


def fallback_image() -> UploadResult:
    """Pick a stock photo to stand in for an image that could not be stored."""
    url = f"{random.choice(STOCK_IMAGE_URLS)}?w=800&h=600&fit=crop&q=80"
    return UploadResult(url=url, id=str(uuid.uuid4()), fallback=True)


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a base64 data URL into content type and bytes.

    Raises:
        ValueError: If the string is not a base64 image data URL
    """
    match = DATA_URL_PATTERN.match(data_url or '')
    if not match or not match.group('content_type').startswith('image/'):
        raise ValueError("Expected a base64 image data URL")
    try:
        return match.group('content_type'), base64.b64decode(match.group('data'), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


class S3ImageHost:
    """Uploads event images to an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = 'alchies-events',
        public_base_url: Optional[str] = None
    ):
        """
        Initialize S3 client.

        Args:
            bucket: Target bucket name
            prefix: Key prefix for uploaded images
            public_base_url: URL that serves the bucket (CDN); defaults to
                the bucket's virtual-hosted S3 endpoint
        """
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.amazonaws.com"
        ).rstrip('/')
        self.s3 = boto3.client('s3')

    def upload_data_url(self, data_url: str) -> UploadResult:
        """
        Store a data URL image and return its public URL.

        Raises:
            ValueError: If the data URL cannot be decoded
            ClientError: If S3 rejects the upload
        """
        content_type, body = decode_data_url(data_url)
        image_id = f"alchies-event-{uuid.uuid4()}"
        key = f"{self.prefix}/{image_id}.{EXTENSIONS.get(content_type, 'img')}"

        logger.info(f"Uploading {len(body)} byte image to s3://{self.bucket}/{key}")
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type
            )
        except ClientError as e:
            logger.error(f"Error uploading image to S3: {e}")
            raise

        return UploadResult(url=f"{self.public_base_url}/{key}", id=image_id)
