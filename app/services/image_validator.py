"""Check that uploaded bytes are a decodable image."""
import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
    "WEBP": ("webp", "image/webp"),
    "GIF": ("gif", "image/gif"),
    "BMP": ("bmp", "image/bmp"),
    "TIFF": ("tiff", "image/tiff"),
}


class InvalidImageError(ValueError):
    pass


def validate_image(content: bytes, max_size_bytes: int) -> tuple[str, str]:
    """Return (extension, content_type) for a valid image, or raise InvalidImageError."""
    if not content:
        raise InvalidImageError("Image is empty")
    if len(content) > max_size_bytes:
        raise InvalidImageError(f"Image exceeds {max_size_bytes} bytes")

    try:
        with Image.open(io.BytesIO(content)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.info("Rejected undecodable image: %s", e)
        raise InvalidImageError("File is not a decodable image") from e

    if image_format not in EXTENSIONS:
        raise InvalidImageError(f"Unsupported image format: {image_format}")
    return EXTENSIONS[image_format]
