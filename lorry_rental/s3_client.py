import asyncio
import aioboto3
import aiohttp
import logging
from uuid import uuid4
from botocore.exceptions import BotoCoreError, ClientError

from . import config

logger = logging.getLogger(__name__)


class ImageStorageError(Exception):
    pass


class ImageStorageUnavailable(ImageStorageError):
    pass


class VehicleImageStorage:
    """Vehicle photos in S3-compatible object storage."""

    content_types = {
        'jpg': 'image/jpeg',
        'jpeg': 'image/jpeg',
        'png': 'image/png',
        'gif': 'image/gif',
        'webp': 'image/webp',
        'svg': 'image/svg+xml',
        'bmp': 'image/bmp',
    }

    def __init__(self, bucket_name=None, region=None, endpoint_url=None, access_domain=None,
                 access_key_id=None, secret_access_key=None):
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_domain = access_domain
        self.session = None
        if bucket_name and access_key_id and secret_access_key:
            self.session = aioboto3.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region
            )
            logger.info(f"Image storage configured: bucket {bucket_name} at {endpoint_url or 'default endpoint'}")
        else:
            logger.warning("Image storage not configured, vehicle image uploads are disabled")

    @classmethod
    def from_config(cls):
        return cls(
            bucket_name=config.S3_BUCKET_NAME,
            region=config.AWS_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
            access_domain=config.S3_ACCESS_DOMAIN,
            access_key_id=config.AWS_ACCESS_KEY_ID,
            secret_access_key=config.AWS_SECRET_ACCESS_KEY,
        )

    @property
    def enabled(self) -> bool:
        return self.session is not None

    def _client(self):
        return self.session.client('s3', endpoint_url=self.endpoint_url)

    def get_file_url(self, file_key: str) -> str:
        if self.access_domain:
            return f"https://{self.access_domain}/{file_key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{file_key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{file_key}"

    def owns(self, file_url: str) -> bool:
        """True if the URL points at an object this storage uploaded."""
        if not self.enabled or not file_url:
            return False
        return file_url.startswith(self.get_file_url(""))

    def get_content_type(self, file_extension: str) -> str:
        return self.content_types.get(file_extension.lower(), 'application/octet-stream')

    async def upload_file(self, file, filename: str) -> str:
        if not self.enabled:
            raise ImageStorageUnavailable("Image storage is not configured")

        file_extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else 'bin'
        file_key = f"vehicles/{uuid4()}.{file_extension}"

        try:
            async with self._client() as s3_client:
                if hasattr(file, 'seek'):
                    file.seek(0)
                await s3_client.upload_fileobj(
                    file,
                    self.bucket_name,
                    file_key,
                    ExtraArgs={
                        'ACL': 'public-read',
                        'ContentType': self.get_content_type(file_extension)
                    }
                )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Image upload error: {e}")
            raise ImageStorageError(str(e)) from e

        file_url = self.get_file_url(file_key)
        logger.info(f"Vehicle image uploaded: {file_url}")
        await self._verify_file_access(file_url)
        return file_url

    async def _verify_file_access(self, file_url: str):
        """Logs whether the uploaded object is publicly reachable."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(file_url, timeout=aiohttp.ClientTimeout(total=10)) as response:
                    if response.status == 200:
                        logger.info(f"File is accessible: {file_url}")
                    else:
                        logger.warning(f"File access issue: {file_url} - HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not verify file access: {file_url} - {e}")

    async def delete_file(self, file_url: str):
        if not self.owns(file_url):
            return

        file_key = file_url[len(self.get_file_url("")):]
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket_name, Key=file_key)
            logger.info(f"Vehicle image deleted: {file_key}")
        except (BotoCoreError, ClientError) as e:
            # the vehicle row is already gone; an orphaned object is acceptable
            logger.error(f"Image delete error: {e}")


image_storage = VehicleImageStorage.from_config()
