"""
Image compression for server-side uploads.

Images are downscaled to fit a bounding box and re-encoded in their original
format. Animated GIFs, videos and audio are passed through untouched.
"""
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("api")

MB = 1024 * 1024

# Upper bound on width * height, checked before decoding.
MAX_IMAGE_PIXELS = 50_000_000

PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


class ImageTooLarge(ValueError):
    pass


@dataclass(frozen=True)
class CompressionOptions:
    max_width: int = 1920
    max_height: int = 1080
    quality: float = 0.8


def compression_settings(size_bytes: int) -> CompressionOptions:
    """Smaller targets for larger inputs."""
    size_mb = size_bytes / MB
    if size_mb < 1:
        return CompressionOptions(1280, 720, 0.7)
    if size_mb < 3:
        return CompressionOptions(1280, 720, 0.6)
    if size_mb < 5:
        return CompressionOptions(1024, 576, 0.5)
    return CompressionOptions(800, 600, 0.4)


def should_compress_image(size_bytes: int, max_size_mb: float = 2) -> bool:
    return size_bytes > max_size_mb * MB


def fit_within(width: int, height: int, max_width: int, max_height: int):
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, int(width * ratio)), max(1, int(height * ratio))


def compress_image(data: bytes, content_type: str, options: CompressionOptions = None) -> bytes:
    """
    Return re-encoded image bytes, or the original bytes when the type is not
    compressible or the result would not be smaller.

    Raises ImageTooLarge when the decoded image would exceed MAX_IMAGE_PIXELS.
    """
    pil_format = PIL_FORMATS.get(content_type)
    if pil_format is None:
        return data

    options = options or CompressionOptions()

    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.width * image.height > MAX_IMAGE_PIXELS:
                raise ImageTooLarge(f"{image.width}x{image.height} exceeds {MAX_IMAGE_PIXELS} pixels")
            image.load()
            size = fit_within(image.width, image.height, options.max_width, options.max_height)
            if size != image.size:
                image = image.resize(size, Image.LANCZOS)

            if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            output = io.BytesIO()
            save_kwargs = {"optimize": True}
            if pil_format in ("JPEG", "WEBP"):
                save_kwargs["quality"] = int(round(options.quality * 100))
            image.save(output, format=pil_format, **save_kwargs)
    except Image.DecompressionBombError as e:
        raise ImageTooLarge(str(e)) from e
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"[COMPRESS] Could not compress {content_type}: {e}")
        return data

    compressed = output.getvalue()
    if len(compressed) >= len(data):
        return data

    logger.info(f"[COMPRESS] {content_type} {len(data)} -> {len(compressed)} bytes")
    return compressed
