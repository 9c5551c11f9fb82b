# core/fingerprint.py

import io
from pathlib import Path
from typing import Union

import imagehash
from PIL import Image, UnidentifiedImageError

from imgdedup.core.exceptions import DecodeError, HashError
from imgdedup.core.models import Fingerprint

ImageSource = Union[bytes, str, Path, Image.Image]

DEFAULT_HASH_SIZE = 8  # 8x8 DCT -> 64-bit hash

_DECODE_FAILURES = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


def compute_fingerprint(source: ImageSource,
                        hash_size: int = DEFAULT_HASH_SIZE) -> Fingerprint:
    """
    Compute the perceptual hash (pHash) of an image.

    The image is downsampled to grayscale, transformed with a DCT and the
    low-frequency block is quantized against its median, giving a
    ``hash_size ** 2`` bit fingerprint. The function keeps no state, so it
    is safe to call from any number of threads.

    Args:
        source: raw file bytes, a path, or an already decoded PIL image
        hash_size: side of the DCT block kept (8 -> 64 bits)

    Raises:
        DecodeError: the input is not a parseable image
        HashError: the decoded image has zero width/height or cannot be hashed
    """
    if isinstance(source, Image.Image):
        return _hash_image(source, hash_size)

    try:
        stream = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else str(source)
        with Image.open(stream) as img:
            # Force a full decode so truncated files fail here, not in phash
            img.load()
            return _hash_image(img, hash_size)
    except (DecodeError, HashError):
        raise
    except _DECODE_FAILURES as e:
        raise DecodeError(f"cannot decode image: {e}") from e


def _hash_image(img: Image.Image, hash_size: int) -> Fingerprint:
    width, height = img.size
    if width == 0 or height == 0:
        raise HashError(f"degenerate image geometry {width}x{height}")

    try:
        image_hash = imagehash.phash(img, hash_size=hash_size)
    except (ValueError, ZeroDivisionError, MemoryError) as e:
        raise HashError(f"cannot hash image: {e}") from e

    return Fingerprint(value=int(str(image_hash), 16), bits=image_hash.hash.size)
