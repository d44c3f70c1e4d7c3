"""
Tests for strip-based TIFF decoding.
"""

import io

import numpy as np
import pytest
import tifffile

from decoding import StripDecoder, decode_image
from models.errors import DecodeError
from models.frame import PIXEL_DTYPE


def sample_image(height, width, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 2**32 - 1, size=(height, width), dtype=np.uint32)


class TestStripDecoder:

    def test_single_strip(self, strip_tiff):
        image = sample_image(4, 5)

        frame = StripDecoder().decode(strip_tiff(image))

        assert frame.size == (5, 4)
        assert frame.pixels.size == 20
        assert frame.pixels.dtype == PIXEL_DTYPE
        assert np.array_equal(frame.as_image(), image)

    def test_multiple_strips_with_short_last_strip(self, strip_tiff):
        image = sample_image(7, 6, seed=1)

        frame = StripDecoder().decode(strip_tiff(image, rows_per_strip=3))

        assert frame.pixels.size == 42
        assert np.array_equal(frame.as_image(), image)

    def test_one_row_per_strip(self, strip_tiff):
        image = sample_image(5, 3, seed=2)

        frame = StripDecoder().decode(strip_tiff(image, rows_per_strip=1))

        assert np.array_equal(frame.as_image(), image)

    def test_big_endian_is_converted(self, strip_tiff):
        image = sample_image(4, 4, seed=3)

        frame = StripDecoder().decode(strip_tiff(image, rows_per_strip=2, byteorder=">"))

        assert np.array_equal(frame.as_image(), image)
        assert frame.to_bytes() == image.astype("<u4").tobytes()

    def test_resolution_tags(self, strip_tiff):
        frame = StripDecoder().decode(strip_tiff(np.zeros((2, 2)), resolution=(75, 1000)))

        assert frame.pixel_resolution_x == pytest.approx(0.075)
        assert frame.pixel_resolution_y == pytest.approx(0.075)

    def test_missing_resolution_defaults_to_zero(self, strip_tiff):
        frame = StripDecoder().decode(strip_tiff(np.zeros((2, 2)), resolution=None))

        assert frame.pixel_resolution_x == 0.0
        assert frame.pixel_resolution_y == 0.0

    def test_carries_fetch_info(self, strip_tiff):
        frame = StripDecoder(source="EIGER_det_80").decode(
            strip_tiff(np.zeros((2, 2))), timestamp=12.5, index=4
        )

        assert frame.timestamp == 12.5
        assert frame.index == 4
        assert frame.source == "EIGER_det_80"

    def test_truncated_mid_strip_fails(self, strip_tiff):
        data = strip_tiff(sample_image(6, 4), rows_per_strip=2)

        with pytest.raises(DecodeError):
            StripDecoder().decode(data[:-10])

    def test_oversized_dimensions_fail_before_allocation(self, strip_tiff):
        data = strip_tiff(sample_image(2, 2), claimed_size=(100000, 100000))

        with pytest.raises(DecodeError, match="payload has"):
            StripDecoder().decode(data)

    def test_strip_byte_counts_must_cover_image(self, strip_tiff):
        data = strip_tiff(sample_image(2, 2), claimed_size=(2, 3))

        with pytest.raises(DecodeError, match="Strips hold 16 bytes"):
            StripDecoder().decode(data)

    def test_garbage_fails(self):
        with pytest.raises(DecodeError):
            StripDecoder().decode(b"this is not a tiff container")

    def test_empty_fails(self):
        with pytest.raises(DecodeError):
            StripDecoder().decode(b"")

    def test_wrong_sample_depth_fails(self):
        buf = io.BytesIO()
        tifffile.imwrite(buf, np.zeros((4, 4), dtype=np.uint16))

        with pytest.raises(DecodeError, match="32-bit"):
            StripDecoder().decode(buf.getvalue())

    def test_multi_sample_fails(self):
        buf = io.BytesIO()
        tifffile.imwrite(buf, np.zeros((4, 4, 3), dtype=np.uint8), photometric="rgb")

        with pytest.raises(DecodeError):
            StripDecoder().decode(buf.getvalue())

    def test_tifffile_written_image(self):
        image = sample_image(8, 6, seed=4)
        buf = io.BytesIO()
        tifffile.imwrite(buf, image)

        frame = decode_image(buf.getvalue())

        assert np.array_equal(frame.as_image(), image)

    def test_compressed_strips(self):
        image = sample_image(8, 6, seed=5)
        buf = io.BytesIO()
        tifffile.imwrite(buf, image, compression="zlib", rowsperstrip=2)

        frame = decode_image(buf.getvalue())

        assert np.array_equal(frame.as_image(), image)


def test_strip_layout():
    assert StripDecoder.strip_layout(width=10, height=7, rows_per_strip=3) == (120, 3)
    assert StripDecoder.strip_layout(width=10, height=6, rows_per_strip=6) == (240, 1)

    with pytest.raises(DecodeError):
        StripDecoder.strip_layout(width=10, height=6, rows_per_strip=0)
