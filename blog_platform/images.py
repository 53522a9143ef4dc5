import logging

import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from blog_platform.config import Settings
from blog_platform.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Upload presets per use.  Cloudinary applies the transformation on ingest.
AVATAR_OPTIONS = {"folder": "blog-platform/avatars", "width": 300, "height": 300, "crop": "fill"}
COVER_OPTIONS = {"folder": "blog-platform/blogs", "width": 800, "height": 400, "crop": "fill"}
INLINE_OPTIONS = {"folder": "blog-platform/inline", "width": 1600, "crop": "limit"}


def is_data_uri(value: str | None) -> bool:
    return bool(value) and value.startswith("data:")


class ImageHost:
    """
    Thin client for the Cloudinary image host.

    Credentials are passed on every upload call rather than through
    ``cloudinary.config`` so that no process-global state is involved.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str) -> None:
        self._credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }

    @classmethod
    def from_settings(cls, config: Settings) -> "ImageHost":
        return cls(
            config.CLOUDINARY_CLOUD_NAME,
            config.CLOUDINARY_API_KEY,
            config.CLOUDINARY_API_SECRET,
        )

    @property
    def configured(self) -> bool:
        return all(self._credentials.values())

    async def upload(self, image: str, **options) -> str:
        """
        Upload a base64 data URI and return its stable HTTPS URL.

        Raises ``UpstreamUnavailable`` when credentials are missing or the
        host rejects the upload.
        """
        if not self.configured:
            raise UpstreamUnavailable()
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload, image, **self._credentials, **options
            )
        except Exception as exc:
            logger.warning("Image upload failed: %s", exc)
            raise UpstreamUnavailable("Image upload failed") from exc

        url = result.get("secure_url")
        if not url:
            raise UpstreamUnavailable("Image upload failed")
        return url

    async def resolve(self, image: str, **options) -> str:
        """
        Return a hosted URL for *image*: data URIs are uploaded, anything
        else is assumed to be an already-hosted reference and returned as is.
        """
        if is_data_uri(image):
            return await self.upload(image, **options)
        return image
