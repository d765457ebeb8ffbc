# -*- coding: utf-8 -*-

"""
preprocess.py
Raw encoded image -> upright, size-bounded, binarized pixel buffer.

EXIF orientation is applied by OpenCV while decoding; arbitrarily rotated
photographs are not deskewed.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from .config import DEFAULT_CONFIG, DEFAULT_MAX_WIDTH, ImageProcessingConfig
from .errors import ImageDecodeError
from .models import PixelBuffer, PreprocessedImage


# -----------------------------
# Decode / resize / binarize
# -----------------------------
def decode_image(data: bytes) -> np.ndarray:
    """
    Decode to a single-channel image, turned upright according to its EXIF
    orientation. Raises ImageDecodeError.
    """
    if not data:
        raise ImageDecodeError("Image data is empty")

    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        gray = cv2.imdecode(buf, cv2.IMREAD_GRAYSCALE)
    except cv2.error as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e
    if gray is None or gray.size == 0:
        raise ImageDecodeError("Failed to decode image: unsupported or corrupt data")
    return gray


def resize_to_max_width(gray: np.ndarray, max_width: int = DEFAULT_MAX_WIDTH) -> np.ndarray:
    h, w = gray.shape[:2]
    if max_width <= 0 or w <= max_width:
        return gray

    new_h = max(1, int(round(h * (max_width / float(w)))))
    logging.debug("Resizing %dx%d -> %dx%d", w, h, max_width, new_h)
    return cv2.resize(gray, (max_width, new_h), interpolation=cv2.INTER_AREA)


def binarize(gray: np.ndarray, threshold: int) -> PixelBuffer:
    """Pixels >= threshold become 255, everything else 0."""
    if threshold <= 0:
        binary = np.full_like(gray, 255)
    else:
        _, binary = cv2.threshold(gray, threshold - 1, 255, cv2.THRESH_BINARY)
    return binary


def _freeze(arr: np.ndarray) -> PixelBuffer:
    arr = np.ascontiguousarray(arr)
    arr.flags.writeable = False
    return arr


def preprocess_image(
    data: bytes,
    config: ImageProcessingConfig = DEFAULT_CONFIG,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> PreprocessedImage:
    gray = decode_image(data)
    h0, w0 = gray.shape[:2]

    resized = resize_to_max_width(gray, max_width)
    binary = binarize(resized, config.threshold)

    logging.debug(
        "Preprocessed image %dx%d (source %dx%d)",
        resized.shape[1],
        resized.shape[0],
        w0,
        h0,
    )
    return PreprocessedImage(
        pixels=_freeze(binary),
        gray=_freeze(resized),
        resized=resized is not gray,
    )
