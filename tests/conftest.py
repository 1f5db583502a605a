"""공용 테스트 fixture: 메모리 안에서 이미지 bytes 생성"""

import io

import numpy as np
import pytest
from PIL import Image


def encode_image(img, fmt='PNG', **save_kwargs):
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def make_image_bytes():
    """(width, height, color, mode, fmt) -> 이미지 파일 bytes"""

    def _make(width, height, color=(255, 0, 0), mode='RGB', fmt='PNG'):
        return encode_image(Image.new(mode, (width, height), color), fmt)

    return _make


@pytest.fixture
def split_image():
    """왼쪽 절반 빨강, 오른쪽 절반 파랑인 PIL 이미지"""

    def _make(width, height):
        pixels = np.zeros((height, width, 3), dtype=np.uint8)
        pixels[:, :width // 2] = (255, 0, 0)
        pixels[:, width // 2:] = (0, 0, 255)
        return Image.fromarray(pixels)

    return _make


@pytest.fixture
def random_raster():
    """시드 고정 랜덤 RGBA 래스터"""

    def _make(width, height, seed=0):
        rng = np.random.default_rng(seed)
        return rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)

    return _make
