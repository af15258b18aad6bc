import base64
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from conftest import png_bytes

from brandtheme.config import ExtractionSettings
from brandtheme.errors import ExtractionFailed, InvalidInput
from brandtheme.extract.normalize import (
    decode_data_uri,
    sample_pixels,
    sniff_format,
    validate_image_bytes,
)


def test_validates_png_and_jpeg():
    info = validate_image_bytes(png_bytes([(255, 0, 0)], size=(30, 10)))
    assert (info.format, info.mime, info.width, info.height) == ("PNG", "image/png", 30, 10)
    jpeg = png_bytes([(0, 0, 255)], fmt="JPEG")
    assert validate_image_bytes(jpeg).format == "JPEG"


def test_sniff_format_signatures():
    assert sniff_format(b"GIF89a" + b"\x00" * 10) == "GIF"
    assert sniff_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "WEBP"
    assert sniff_format(b"<svg xmlns=") is None


def test_rejects_non_images():
    with pytest.raises(InvalidInput):
        validate_image_bytes(b"<html><body>hello</body></html>")
    with pytest.raises(InvalidInput):
        validate_image_bytes(b"")


def test_rejects_corrupt_image_with_valid_magic():
    with pytest.raises(InvalidInput) as excinfo:
        validate_image_bytes(b"\x89PNG\r\n\x1a\n" + b"garbage" * 20)
    assert excinfo.value.message == "Could not parse image"


def test_rejects_oversized_payload_and_dimensions():
    data = png_bytes([(255, 0, 0)], size=(20, 20))
    with pytest.raises(InvalidInput):
        validate_image_bytes(data, ExtractionSettings(max_image_bytes=10))
    with pytest.raises(InvalidInput) as excinfo:
        validate_image_bytes(data, ExtractionSettings(max_dimension=10))
    assert "dimensions" in excinfo.value.message


def test_decode_data_uri():
    data = png_bytes([(255, 0, 0)])
    uri = "data:image/png;base64," + base64.b64encode(data).decode("ascii")
    assert decode_data_uri(uri) == data
    with pytest.raises(InvalidInput):
        decode_data_uri("data:image/svg+xml;base64,PHN2Zz4=")
    with pytest.raises(InvalidInput):
        decode_data_uri("data:image/png;base64,@@@notbase64")
    with pytest.raises(InvalidInput):
        decode_data_uri(uri, ExtractionSettings(max_base64_length=20))


def test_sample_pixels_fits_inside_box():
    pixels = sample_pixels(png_bytes([(255, 0, 0), (0, 0, 255)], size=(300, 150)), size=100)
    assert pixels.dtype == np.uint8
    assert pixels.shape == (100 * 50, 3)


def test_sample_pixels_keeps_small_images():
    pixels = sample_pixels(png_bytes([(10, 20, 30)], size=(8, 4)))
    assert pixels.shape == (32, 3)
    assert (pixels == [10, 20, 30]).all()


def test_transparent_pixels_flatten_to_white():
    img = Image.new("RGBA", (10, 10), (255, 0, 0, 0))
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    pixels = sample_pixels(buffer.getvalue())
    assert (pixels == 255).all()


def test_sample_pixels_rejects_undecodable_bytes():
    with pytest.raises(ExtractionFailed):
        sample_pixels(b"not an image")
