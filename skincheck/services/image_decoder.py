"""
Image decode capability.

Turns an uploaded image (raw bytes, base64 or a ``data:`` URL) into the
float tensor the classifier expects: RGB, square, scaled to [-1, 1], with
a leading batch dimension (NHWC). Decoding runs in a worker thread so the
event loop is never blocked.
"""

import asyncio
import base64
import binascii
import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from skincheck.config.logging_config import get_logger
from skincheck.exceptions import ImageDecodeError

logger = get_logger(__name__)

ImagePayload = bytes | str


def payload_to_bytes(image: ImagePayload) -> bytes:
    """
    Normalize an image payload to raw bytes.

    Strings are treated as base64, optionally wrapped in a data URL
    (``data:image/png;base64,...``).

    Raises:
        ImageDecodeError: If the string is not valid base64 or the payload is empty.
    """
    if isinstance(image, bytes):
        data = image
    else:
        text = image.strip()
        if text.startswith("data:"):
            header, _, text = text.partition(",")
            if ";base64" not in header:
                raise ImageDecodeError("Only base64 data URLs are supported")
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Image is not valid base64: {e}") from e

    if not data:
        raise ImageDecodeError("Image payload is empty")
    return data


def decode_to_array(data: bytes, image_size: int) -> np.ndarray:
    """
    Decode image bytes into a (1, size, size, 3) float32 array.

    Raises:
        ImageDecodeError: If Pillow cannot read the image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgb = img.convert("RGB").resize((image_size, image_size), Image.Resampling.BILINEAR)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Failed to load image: {e}") from e

    pixels = np.asarray(rgb, dtype=np.float32) / 127.5 - 1.0
    return np.expand_dims(pixels, axis=0)


class ImageDecoder:
    """Awaitable decode capability used by the inference executor."""

    async def decode(self, image: ImagePayload, image_size: int) -> np.ndarray:
        """
        Decode an image payload for a model with the given input size.

        Args:
            image: Raw bytes, base64 string or data URL.
            image_size: Square input edge length expected by the model.

        Returns:
            Batched float32 pixel array.

        Raises:
            ImageDecodeError: If the payload cannot be decoded.
        """
        data = payload_to_bytes(image)
        pixels = await asyncio.to_thread(decode_to_array, data, image_size)
        logger.debug("Image decoded", bytes=len(data), shape=list(pixels.shape))
        return pixels
