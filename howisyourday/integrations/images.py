# integrations/images.py

import base64
import binascii
import hashlib
import logging
import re
import time

import requests
from flask import current_app

from howisyourday.errors import ImageUploadError, ValidationError
from howisyourday.shared_data import IMAGE_UPLOAD

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"

# Limit max size, then let Cloudinary pick quality and format (WebP when supported)
DEFAULT_TRANSFORMATION = "c_limit,h_630,w_1200/q_auto/f_auto"

DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def validate_image_source(image):
    """Check an upload payload before it goes to the image host.

    Accepts a base64 data URI of an allowed image type no larger than the
    upload limit, or a plain http(s) URL for the host to fetch.
    """
    if not isinstance(image, str) or not image.strip():
        raise ValidationError("Image data is required")

    image = image.strip()
    if image.startswith(("http://", "https://")):
        return image

    match = DATA_URI.match(image)
    if not match:
        raise ValidationError("Image must be a base64 data URI or an http(s) URL")

    mime = match.group("mime").lower()
    if mime not in IMAGE_UPLOAD["ALLOWED_TYPES"]:
        raise ValidationError(f"Unsupported image type: {mime}")

    try:
        raw = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64")

    if len(raw) > IMAGE_UPLOAD["MAX_SIZE_MB"] * 1024 * 1024:
        raise ValidationError(f"Image is larger than {IMAGE_UPLOAD['MAX_SIZE_MB']} MB")

    return image


def to_data_uri(raw, mime_type):
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


class CloudinaryImageHost:
    """Signed uploads to Cloudinary's REST upload endpoint."""

    def __init__(self, cloud_name, api_key, api_secret, folder="blog-posts",
                 timeout=10, session=None):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            cloud_name=config.get("CLOUDINARY_CLOUD_NAME"),
            api_key=config.get("CLOUDINARY_API_KEY"),
            api_secret=config.get("CLOUDINARY_API_SECRET"),
            folder=config.get("CLOUDINARY_FOLDER", "blog-posts"),
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
        )

    def sign(self, params):
        """Cloudinary signature: sha1 of the sorted params plus the secret."""
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def upload(self, image, folder=None):
        """Upload a data URI or remote URL and return the hosted image details."""
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise ImageUploadError("Cloudinary credentials not configured")

        params = {
            "folder": folder or self.folder,
            "timestamp": int(time.time()),
            "transformation": DEFAULT_TRANSFORMATION,
        }
        form = dict(params, file=image, api_key=self.api_key, signature=self.sign(params))

        try:
            response = self.session.post(
                CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name),
                data=form,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Cloudinary upload request failed: {e}")
            raise ImageUploadError("Failed to upload image") from e

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.status_code >= 400 or "secure_url" not in result:
            message = (result.get("error") or {}).get("message", response.text[:200])
            logger.error(f"Cloudinary upload error {response.status_code}: {message}")
            raise ImageUploadError("Failed to upload image")

        return {
            "url": result["secure_url"],
            "publicId": result.get("public_id"),
            "width": result.get("width"),
            "height": result.get("height"),
            "format": result.get("format"),
        }


def get_image_host():
    return current_app.extensions["image_host"]
