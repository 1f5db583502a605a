#!/usr/bin/env python3
"""
원본 이미지를 e-ink 액자 해상도(800x480 / 480x800)에 맞추는 기하 변환

- scale / cut 모드: 캔버스를 완전히 덮도록 확대/축소 후 중앙 배치 (흰색 배경)
- 크롭 모드: 사용자가 지정한 원본 영역을 캔버스 크기로 그대로 늘려서 채움
- 초기 크롭 영역 계산, 드래그 시 크롭 위치 보정
"""

import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from conversion_errors import DegenerateRasterError, InvalidCropError


@dataclass(frozen=True)
class TargetFrame:
    """출력 해상도 (가로/세로 두 가지만 사용)"""
    name: str
    width: int
    height: int

    @property
    def aspect(self):
        return self.width / self.height

    @property
    def size(self):
        return (self.width, self.height)


@dataclass(frozen=True)
class CropRectangle:
    """원본 픽셀 좌표계의 크롭 영역"""
    x: float
    y: float
    width: float
    height: float

    @property
    def box(self):
        """PIL resize()용 (left, top, right, bottom)"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


LANDSCAPE = TargetFrame('landscape', 800, 480)
PORTRAIT = TargetFrame('portrait', 480, 800)
TARGET_FRAMES = {
    'landscape': LANDSCAPE,
    'portrait': PORTRAIT,
}
ORIENTATIONS = ('auto', 'landscape', 'portrait')

# scale과 cut은 현재 동일한 알고리즘 (cover + center). 호출하는 쪽에서 쓰는 이름만 다름
FIT_MODES = ('scale', 'cut')

BACKGROUND_COLOR = (255, 255, 255)
RESAMPLE = Image.Resampling.LANCZOS

# 크롭 비율 허용 오차 (상대값), 원본 경계 허용 오차 (픽셀)
ASPECT_TOLERANCE = 1e-3
EDGE_TOLERANCE = 1e-6


def _round_half_up(value):
    # 브라우저 Math.round와 같은 반올림 (Python round()는 banker's rounding)
    return int(math.floor(value + 0.5))


def resolve_target(src_width, src_height, orientation='auto'):
    """
    출력 해상도 결정

    orientation이 'auto'이면 가로가 더 긴 경우만 landscape, 정사각형 포함 나머지는 portrait
    """
    if orientation == 'auto':
        return LANDSCAPE if src_width > src_height else PORTRAIT
    if orientation not in TARGET_FRAMES:
        raise ValueError(f"지원하지 않는 orientation: {orientation!r} (auto, landscape, portrait)")
    return TARGET_FRAMES[orientation]


def initial_crop(src_width, src_height, target):
    """원본 중앙에 놓인, 대상 비율을 유지하는 최대 크기의 크롭 영역"""
    aspect = target.aspect
    if src_width / src_height > aspect:
        crop_height = src_height
        crop_width = crop_height * aspect
    else:
        crop_width = src_width
        crop_height = crop_width / aspect

    return CropRectangle(
        x=(src_width - crop_width) / 2,
        y=(src_height - crop_height) / 2,
        width=crop_width,
        height=crop_height,
    )


def clamp_crop_position(crop, new_x, new_y, src_width, src_height):
    """드래그로 이동한 크롭 영역을 원본 안쪽으로 보정 (크기는 그대로)"""
    x = max(0.0, min(new_x, src_width - crop.width))
    y = max(0.0, min(new_y, src_height - crop.height))
    return CropRectangle(x=x, y=y, width=crop.width, height=crop.height)


def validate_crop(crop, src_width, src_height, target):
    """크롭 영역 검증. 문제가 있으면 InvalidCropError (자동 보정하지 않음)"""
    if crop.width <= 0 or crop.height <= 0:
        raise InvalidCropError(f"크롭 크기가 0 이하입니다: {crop.width}x{crop.height}")

    if not math.isclose(crop.width / crop.height, target.aspect, rel_tol=ASPECT_TOLERANCE):
        raise InvalidCropError(
            f"크롭 비율 {crop.width / crop.height:.4f}이(가) "
            f"{target.width}x{target.height} 비율 {target.aspect:.4f}과 다릅니다"
        )

    if (crop.x < -EDGE_TOLERANCE or crop.y < -EDGE_TOLERANCE or
            crop.x + crop.width > src_width + EDGE_TOLERANCE or
            crop.y + crop.height > src_height + EDGE_TOLERANCE):
        raise InvalidCropError(
            f"크롭 영역 ({crop.x}, {crop.y}, {crop.width}, {crop.height})이(가) "
            f"원본 {src_width}x{src_height} 범위를 벗어납니다"
        )


def _to_8bit_gray(image):
    """
    16/32비트 정수, float 흑백 이미지를 8비트 'L'로 축소

    convert('RGB')는 255를 넘는 값을 잘라버리므로 (중간 회색 16비트 PNG가 흰색이 됨)
    먼저 0-65535 범위를 0-255로 스케일한다. 'I', 'F' 모드는 최댓값이 255 이하면
    이미 8비트 범위로 보고 그대로 둔다.
    """
    values = np.asarray(image, dtype=np.float64)
    if image.mode.startswith('I;16') or values.max(initial=0) > 255:
        values = values / 257
    return Image.fromarray(np.clip(np.rint(values), 0, 255).astype(np.uint8))


def _prepare_source(image):
    """투명도가 있으면 RGBA (흰 배경 위에 합성하기 위해), 아니면 RGB"""
    if image.mode.startswith('I') or image.mode == 'F':
        image = _to_8bit_gray(image)
    if image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info:
        return image.convert('RGBA')
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def _cover_and_center(source, target):
    """
    캔버스를 덮도록 확대/축소한 뒤 중앙에 배치했을 때의 (리사이즈 결과, 붙일 위치)

    전체를 리사이즈하지 않고 캔버스에 실제로 보이는 영역만 리사이즈한다.
    (극단적인 비율의 원본에서 거대한 중간 이미지를 만들지 않기 위함)
    """
    src_w, src_h = source.size
    ratio = max(target.width / src_w, target.height / src_h)

    resized_w = _round_half_up(src_w * ratio)
    resized_h = _round_half_up(src_h * ratio)

    left = (target.width - resized_w) // 2
    top = (target.height - resized_h) // 2

    # 리사이즈된 좌표계에서 캔버스에 보이는 구간
    visible_x0 = max(0, -left)
    visible_y0 = max(0, -top)
    visible_x1 = min(resized_w, target.width - left)
    visible_y1 = min(resized_h, target.height - top)

    scale_x = resized_w / src_w
    scale_y = resized_h / src_h
    box = (
        visible_x0 / scale_x,
        visible_y0 / scale_y,
        visible_x1 / scale_x,
        visible_y1 / scale_y,
    )

    resized = source.resize(
        (visible_x1 - visible_x0, visible_y1 - visible_y0), RESAMPLE, box=box
    )
    return resized, (max(0, left), max(0, top))


def fit(image, target, mode='scale', crop=None):
    """
    원본 이미지를 target 크기의 RGBA 래스터로 변환

    Args:
        image: PIL Image (임의 크기)
        target: LANDSCAPE 또는 PORTRAIT
        mode: 'scale' 또는 'cut' (crop이 없을 때 사용, 두 모드 동작은 동일)
        crop: CropRectangle (지정하면 해당 영역만 캔버스 전체로 확대/축소)

    Returns:
        (target.height, target.width, 4) uint8 배열, alpha는 항상 255
    """
    if mode not in FIT_MODES:
        raise ValueError(f"지원하지 않는 모드: {mode!r} (scale, cut)")

    source = _prepare_source(image)
    src_w, src_h = source.size
    if src_w == 0 or src_h == 0:
        raise DegenerateRasterError(f"원본 이미지 크기가 0입니다: {src_w}x{src_h}", stage='fit')

    canvas = Image.new('RGB', target.size, BACKGROUND_COLOR)

    if crop is None:
        resized, position = _cover_and_center(source, target)
    else:
        validate_crop(crop, src_w, src_h, target)
        # 허용 오차만큼 벗어난 경계는 원본 안쪽으로
        box = (
            max(0.0, crop.x),
            max(0.0, crop.y),
            min(float(src_w), crop.x + crop.width),
            min(float(src_h), crop.y + crop.height),
        )
        resized = source.resize(target.size, RESAMPLE, box=box)
        position = (0, 0)

    if resized.mode == 'RGBA':
        canvas.paste(resized, position, resized)
    else:
        canvas.paste(resized, position)

    return np.array(canvas.convert('RGBA'), dtype=np.uint8)
