#!/usr/bin/env python3
"""
7색 e-ink 팔레트용 Floyd-Steinberg 디더링

- 팔레트 순서: 검정, 흰색, 초록, 파랑, 빨강, 노랑, 주황
- 가장 가까운 색상은 RGB 제곱 유클리드 거리로 선택, 거리가 같으면 앞쪽 인덱스 우선
- 좌상단부터 행 단위로 처리 (오차는 아직 처리하지 않은 픽셀로만 전파)
"""

import numpy as np

# 7색 e-ink 팔레트 (순서는 동일 거리일 때의 우선순위)
EINK_PALETTE = {
    0: (0, 0, 0),        # 검정 (black)
    1: (255, 255, 255),  # 흰색 (white)
    2: (0, 255, 0),      # 초록 (green)
    3: (0, 0, 255),      # 파랑 (blue)
    4: (255, 0, 0),      # 빨강 (red)
    5: (255, 255, 0),    # 노랑 (yellow)
    6: (255, 128, 0),    # 주황 (orange)
}

COLOR_NAMES = {
    0: "black",
    1: "white",
    2: "green",
    3: "blue",
    4: "red",
    5: "yellow",
    6: "orange",
}

PALETTE_ARRAY = np.array([EINK_PALETTE[i] for i in range(len(EINK_PALETTE))], dtype=np.uint8)

# (dx, dy, 가중치): 오른쪽 7/16, 왼쪽 아래 3/16, 아래 5/16, 오른쪽 아래 1/16
FLOYD_STEINBERG_KERNEL = (
    (1, 0, 7 / 16),
    (-1, 1, 3 / 16),
    (0, 1, 5 / 16),
    (1, 1, 1 / 16),
)


def _palette_colors(palette):
    """dict(인덱스 -> RGB) 또는 RGB 시퀀스를 순서가 있는 튜플 리스트로"""
    if palette is None:
        palette = EINK_PALETTE
    if isinstance(palette, dict):
        colors = [tuple(palette[k]) for k in sorted(palette)]
    else:
        colors = [tuple(c) for c in palette]
    if not colors:
        raise ValueError("팔레트가 비어 있습니다")
    return colors


def color_distance(c1, c2):
    """RGB 제곱 유클리드 거리"""
    dr = c1[0] - c2[0]
    dg = c1[1] - c2[1]
    db = c1[2] - c2[2]
    return dr * dr + dg * dg + db * db


def _nearest_in(colors, r, g, b):
    nearest_index = 0
    min_distance = float('inf')

    for index, color in enumerate(colors):
        distance = color_distance((r, g, b), color)
        if distance < min_distance:
            min_distance = distance
            nearest_index = index

    return nearest_index, colors[nearest_index]


def find_nearest_color(r, g, b, palette=None):
    """가장 가까운 팔레트 색상의 (인덱스, RGB). 거리가 같으면 인덱스가 작은 쪽"""
    return _nearest_in(_palette_colors(palette), r, g, b)


def nearest_palette_indices(rgb_array, palette=None):
    """
    디더링 없이 각 픽셀을 가장 가까운 팔레트 인덱스로 변환 (벡터화)

    np.argmin은 동일 거리일 때 첫 번째 인덱스를 반환하므로 우선순위 규칙과 같다.
    """
    colors = np.array(_palette_colors(palette), dtype=np.float32)
    rgb = np.clip(np.asarray(rgb_array, dtype=np.float32), 0.0, 255.0)
    distances = np.sum((rgb[..., None, :] - colors) ** 2, axis=-1)
    return np.argmin(distances, axis=-1)


def palette_indices(raster, palette=None):
    """이미 양자화된 래스터를 팔레트 인덱스로 변환 (팔레트에 없는 색은 -1)"""
    colors = np.array(_palette_colors(palette), dtype=np.uint8)
    rgb = np.asarray(raster)[..., :3]
    matches = np.all(rgb[..., None, :] == colors, axis=-1)
    indices = np.argmax(matches, axis=-1)
    return np.where(np.any(matches, axis=-1), indices, -1)


def quantize(raster, palette=None, dither=True):
    """
    래스터를 팔레트 색상만으로 변환

    Args:
        raster: HxWx3 또는 HxWx4 배열 (0-255)
        palette: dict(인덱스 -> RGB) 또는 RGB 리스트 (기본값: EINK_PALETTE)
        dither: True면 Floyd-Steinberg 오차 확산, False면 최근접 색상만

    Returns:
        입력과 같은 크기의 새 uint8 배열. RGB만 바뀌고 alpha는 그대로.
        입력 배열은 수정하지 않으므로 중간 상태가 밖으로 보이지 않는다.

    오차 누적 버퍼는 float64 (브라우저 버전은 Float32Array). 누적 오차 때문에
    두 팔레트 색과의 거리가 정확히 같아지는 픽셀에서만 결과가 달라질 수 있다.
    """
    raster = np.asarray(raster)
    if raster.ndim != 3 or raster.shape[2] not in (3, 4):
        raise ValueError(f"HxWx3 또는 HxWx4 래스터가 필요합니다: shape={raster.shape}")

    colors = _palette_colors(palette)
    color_array = np.array(colors, dtype=np.uint8)
    height, width = raster.shape[:2]
    result = np.clip(raster, 0, 255).astype(np.uint8)

    if not dither:
        indices = nearest_palette_indices(raster[..., :3], colors)
        result[..., :3] = color_array[indices]
        return result

    # 오차 누적용 작업 버퍼 (0-255 범위를 벗어날 수 있음, 읽을 때만 clamp)
    working = raster[..., :3].astype(np.float64).reshape(-1, 3).tolist()
    indices = [0] * (width * height)

    for y in range(height):
        row = y * width
        for x in range(width):
            i = row + x
            pixel = working[i]

            old_r = min(255.0, max(0.0, pixel[0]))
            old_g = min(255.0, max(0.0, pixel[1]))
            old_b = min(255.0, max(0.0, pixel[2]))

            nearest_idx, (new_r, new_g, new_b) = _nearest_in(colors, old_r, old_g, old_b)
            indices[i] = nearest_idx

            error_r = old_r - new_r
            error_g = old_g - new_g
            error_b = old_b - new_b
            if error_r == 0 and error_g == 0 and error_b == 0:
                continue

            for dx, dy, weight in FLOYD_STEINBERG_KERNEL:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < width and ny < height:
                    neighbor = working[ny * width + nx]
                    neighbor[0] += error_r * weight
                    neighbor[1] += error_g * weight
                    neighbor[2] += error_b * weight

    index_array = np.array(indices, dtype=np.intp).reshape(height, width)
    result[..., :3] = color_array[index_array]
    return result
