"""Perceptual hashing — 64-bit average-hash fingerprints for screenshots."""

from __future__ import annotations

import io

import numpy as np
from PIL import Image

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE


def perceptual_hash(image_bytes: bytes) -> bytes:
    """Return an 8-byte average hash of an encoded image.

    The image is downsampled to 8x8 grayscale; bit i (MSB first, row-major)
    is set when pixel i is at or above the mean luminance.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        small = img.convert("RGB").resize((HASH_SIZE, HASH_SIZE), Image.Resampling.BOX).convert("L")
        pixels = np.asarray(small, dtype=np.float64).ravel()

    bits = pixels >= pixels.mean()
    return np.packbits(bits).tobytes()


def hash_similarity(hash_a: bytes, hash_b: bytes) -> float:
    """1 - hamming/64; 0.0 for empty or differently sized hashes."""
    if not hash_a or not hash_b or len(hash_a) != len(hash_b):
        return 0.0
    distance = sum(bin(a ^ b).count("1") for a, b in zip(hash_a, hash_b))
    return 1.0 - distance / (len(hash_a) * 8)


def hash_to_hex(value: bytes) -> str:
    return value.hex()


def region_hash(image_bytes: bytes, x: float, y: float, width: float, height: float) -> bytes:
    """Perceptual hash of a rectangular patch of an encoded image.

    Returns ``b""`` when the rectangle does not overlap the image.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        left = max(0, int(x))
        top = max(0, int(y))
        right = min(img.width, int(x + width))
        bottom = min(img.height, int(y + height))
        if right <= left or bottom <= top:
            return b""
        patch = img.convert("RGB").crop((left, top, right, bottom))
        buf = io.BytesIO()
        patch.save(buf, format="PNG")
    return perceptual_hash(buf.getvalue())
