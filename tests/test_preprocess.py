import struct

import cv2
import numpy as np
import pytest

from omr_grader.config import ImageProcessingConfig
from omr_grader.errors import ImageDecodeError
from omr_grader.preprocess import (
    binarize,
    decode_image,
    preprocess_image,
    resize_to_max_width,
)

from conftest import encode_png


def _with_exif_orientation(jpeg: bytes, orientation: int) -> bytes:
    """Insert an APP1 Exif segment carrying `orientation` right after SOI."""
    tiff = b"II" + struct.pack("<HI", 0x2A, 8)
    tiff += struct.pack("<H", 1)
    tiff += struct.pack("<HHI", 0x0112, 3, 1) + struct.pack("<HH", orientation, 0)
    tiff += struct.pack("<I", 0)
    payload = b"Exif\x00\x00" + tiff
    app1 = b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload
    return jpeg[:2] + app1 + jpeg[2:]


def _stored_sheet() -> bytes:
    """40x100 white JPEG with a black 20x20 block in its top-left corner."""
    img = np.full((40, 100), 255, dtype=np.uint8)
    img[0:20, 0:20] = 0
    ok, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 95])
    assert ok
    return buf.tobytes()


def _corner_means(img):
    h, w = img.shape[:2]
    return {
        "tl": img[2:10, 2:10].mean(),
        "tr": img[2:10, w - 10 : w - 2].mean(),
        "bl": img[h - 10 : h - 2, 2:10].mean(),
        "br": img[h - 10 : h - 2, w - 10 : w - 2].mean(),
    }


@pytest.mark.parametrize(
    "orientation,shape,corner",
    [
        (1, (40, 100), "tl"),
        (2, (40, 100), "tr"),
        (3, (40, 100), "br"),
        (4, (40, 100), "bl"),
        (5, (100, 40), "tl"),
        (6, (100, 40), "tr"),
        (7, (100, 40), "br"),
        (8, (100, 40), "bl"),
    ],
)
def test_decode_turns_image_upright(orientation, shape, corner):
    gray = decode_image(_with_exif_orientation(_stored_sheet(), orientation))

    assert gray.shape == shape
    means = _corner_means(gray)
    assert means.pop(corner) < 64
    assert all(m > 192 for m in means.values())


def test_preprocess_applies_orientation_before_binarizing():
    data = _with_exif_orientation(_stored_sheet(), 6)
    prepared = preprocess_image(data, ImageProcessingConfig())

    assert (prepared.height, prepared.width) == (100, 40)
    assert prepared.pixels[5, 35] == 0
    assert prepared.pixels[5, 5] == 255
    assert prepared.pixels[90, 35] == 255


def test_jpeg_without_exif_is_left_as_stored():
    gray = decode_image(_stored_sheet())
    assert gray.shape == (40, 100)
    assert _corner_means(gray)["tl"] < 64


@pytest.mark.parametrize("data", [b"", b"definitely not an image", b"\x89PNG\r\n\x1a\n\x00"])
def test_corrupt_data_raises_decode_error(data):
    with pytest.raises(ImageDecodeError):
        decode_image(data)


def test_decode_returns_single_channel():
    color = np.full((20, 30, 3), 200, dtype=np.uint8)
    ok, buf = cv2.imencode(".png", color)
    gray = decode_image(buf.tobytes())
    assert gray.shape == (20, 30)


def test_resize_only_when_wider_than_max():
    wide = np.zeros((300, 2400), dtype=np.uint8)
    out = resize_to_max_width(wide, 1200)
    assert out.shape == (150, 1200)

    narrow = np.zeros((300, 800), dtype=np.uint8)
    assert resize_to_max_width(narrow, 1200) is narrow


def test_binarize_cutoff_is_inclusive():
    gray = np.array([[0, 127, 128, 255]], dtype=np.uint8)
    assert binarize(gray, 128).tolist() == [[0, 0, 255, 255]]


def test_preprocessed_buffer_is_read_only():
    img = np.full((50, 2000), 255, dtype=np.uint8)
    prepared = preprocess_image(encode_png(img), ImageProcessingConfig(), max_width=1000)

    assert prepared.width == 1000
    assert prepared.height == 25
    assert prepared.resized
    assert set(np.unique(prepared.pixels)) <= {0, 255}
    with pytest.raises(ValueError):
        prepared.pixels[0, 0] = 0
