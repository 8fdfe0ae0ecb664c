"""Utility functions for cursorflow: image decoding and call tracing."""

import base64
import binascii
import io
import re
from functools import wraps
from typing import Any, Callable

from PIL import Image, UnidentifiedImageError

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def strip_data_uri(data: str) -> str:
    """Remove a ``data:image/...;base64,`` prefix if present."""
    return _DATA_URI_PREFIX.sub("", data.strip(), count=1)


def image_from_base64(data: str) -> Image.Image:
    """Decode a base64 (or data URI) encoded image.

    Args:
        data: Encoded image.

    Returns:
        PIL.Image: The decoded image.

    Raises:
        ValueError: If the data isn't base64 or isn't an image.
    """
    try:
        binary = base64.b64decode(strip_data_uri(data), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 image data: {exc}") from exc
    return convert_binary_to_png(binary)


def convert_binary_to_png(image_binary: bytes) -> Image.Image:
    """Convert a binary image to a PIL image."""
    buffer = io.BytesIO(image_binary)
    try:
        image = Image.open(buffer)
        image.load()
    except UnidentifiedImageError as exc:
        raise ValueError(f"Unrecognized image data: {exc}") from exc
    return image


def convert_png_to_binary(image: Image.Image) -> bytes:
    """Convert a PIL image to PNG binary data."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def trace(logger: Any) -> Callable:
    """Decorator to trace function entry and exit.

    Args:
        logger: The logger to use.

    Returns:
        Callable: The decorator.
    """
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            logger.info(f"Starting {fn.__name__}")
            try:
                result = fn(*args, **kwargs)
                logger.info(f"Finished {fn.__name__}")
                return result
            except Exception as e:
                logger.error(f"Error in {fn.__name__}: {e}")
                raise
        return wrapper
    return decorator
