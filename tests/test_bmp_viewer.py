"""
bmp_viewer 모듈 테스트

BMP 파싱, 색상 통계, 액자 해상도/팔레트 검증.
"""

import struct

import numpy as np
import pytest
from PIL import Image

from bmp_encoder import encode_bmp
from bmp_viewer import color_statistics, read_bmp, validate_and_preview
from floyd_steinberg import PALETTE_ARRAY


def _palette_frame(width=800, height=480):
    """7색을 세로 줄무늬로 채운 래스터"""
    indices = np.arange(width) % len(PALETTE_ARRAY)
    return np.broadcast_to(PALETTE_ARRAY[indices], (height, width, 3)).copy()


class TestReadBmp:
    """24비트 BMP 읽기"""

    def test_reads_encoder_output(self, random_raster):
        raster = random_raster(11, 5)[..., :3]
        assert np.array_equal(read_bmp(encode_bmp(raster)), raster)

    def test_reads_top_down_bmp(self, random_raster):
        raster = random_raster(6, 4)[..., :3]
        data = bytearray(encode_bmp(raster[::-1]))
        struct.pack_into('<i', data, 22, -4)

        assert np.array_equal(read_bmp(bytes(data)), raster)

    def test_rejects_wrong_signature(self):
        data = bytearray(encode_bmp(np.zeros((2, 2, 3), dtype=np.uint8)))
        data[0:2] = b'XX'
        with pytest.raises(ValueError):
            read_bmp(bytes(data))

    def test_rejects_other_bit_depths(self):
        data = bytearray(encode_bmp(np.zeros((2, 2, 3), dtype=np.uint8)))
        struct.pack_into('<H', data, 28, 32)
        with pytest.raises(ValueError):
            read_bmp(bytes(data))

    def test_rejects_truncated_pixel_data(self):
        data = encode_bmp(np.zeros((4, 4, 3), dtype=np.uint8))
        with pytest.raises(ValueError):
            read_bmp(data[:-5])

    def test_rejects_short_file(self):
        with pytest.raises(ValueError):
            read_bmp(b'BM')


class TestColorStatistics:
    """색상 분포"""

    def test_counts_palette_colors(self):
        rgb = np.array([[[0, 0, 0], [0, 0, 0], [255, 128, 0], [7, 7, 7]]], dtype=np.uint8)
        stats = color_statistics(rgb)

        assert stats['total'] == 4
        assert stats['colors']['black'] == {'count': 2, 'percentage': 50.0}
        assert stats['colors']['orange'] == {'count': 1, 'percentage': 25.0}
        assert stats['colors']['white']['count'] == 0
        assert stats['off_palette'] == 1


class TestValidateAndPreview:
    """검증 + 미리보기"""

    def test_valid_frame_with_preview(self, tmp_path):
        bmp_file = tmp_path / 'frame.bmp'
        bmp_file.write_bytes(encode_bmp(_palette_frame()))
        preview = tmp_path / 'preview.png'

        assert validate_and_preview(str(bmp_file), str(preview)) is True
        assert Image.open(preview).size == (800, 480)

    def test_portrait_frame(self, tmp_path):
        bmp_file = tmp_path / 'portrait.bmp'
        bmp_file.write_bytes(encode_bmp(_palette_frame(480, 800)))

        assert validate_and_preview(str(bmp_file)) is True

    def test_wrong_size_fails(self, tmp_path):
        bmp_file = tmp_path / 'small.bmp'
        bmp_file.write_bytes(encode_bmp(_palette_frame(100, 60)))

        assert validate_and_preview(str(bmp_file)) is False

    def test_off_palette_pixels_fail(self, tmp_path):
        frame = _palette_frame()
        frame[10, 10] = (12, 34, 56)
        bmp_file = tmp_path / 'off.bmp'
        bmp_file.write_bytes(encode_bmp(frame))

        assert validate_and_preview(str(bmp_file)) is False

    def test_not_a_bmp_fails(self, tmp_path):
        bmp_file = tmp_path / 'fake.bmp'
        bmp_file.write_bytes(b'hello')

        assert validate_and_preview(str(bmp_file)) is False
