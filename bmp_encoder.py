#!/usr/bin/env python3
"""
24비트 무압축 BMP 인코더

파일 구조 (모든 정수는 little-endian):
    - 파일 헤더 14 bytes: 'BM', 파일 크기, 예약 0 x2, 픽셀 데이터 오프셋(54)
    - BITMAPINFOHEADER 40 bytes: 높이는 양수 (bottom-up)
    - 픽셀 데이터: 마지막 행부터, 픽셀당 B, G, R, 각 행은 4바이트 정렬 (패딩은 0)
"""

import struct

import numpy as np

from conversion_errors import DegenerateRasterError

FILE_HEADER_SIZE = 14
INFO_HEADER_SIZE = 40
PIXEL_DATA_OFFSET = FILE_HEADER_SIZE + INFO_HEADER_SIZE
BITS_PER_PIXEL = 24
PIXELS_PER_METER = 2835  # 약 72 DPI

FILE_HEADER_FORMAT = '<2sIHHI'
INFO_HEADER_FORMAT = '<IiiHHIIiiII'


def row_stride(width):
    """한 행의 바이트 수 (4바이트 정렬)"""
    return ((width * 3 + 3) // 4) * 4


def encode_bmp(raster):
    """
    래스터를 24비트 BMP 파일 바이트로 변환

    Args:
        raster: HxWx3 (RGB) 또는 HxWx4 (RGBA, alpha는 버림) uint8 배열

    Returns:
        BMP 파일 전체 bytes
    """
    raster = np.asarray(raster)
    if raster.ndim != 3 or raster.shape[2] not in (3, 4):
        raise ValueError(f"HxWx3 또는 HxWx4 래스터가 필요합니다: shape={raster.shape}")

    height, width = raster.shape[:2]
    if width == 0 or height == 0:
        raise DegenerateRasterError(f"폭/높이가 0인 래스터는 인코딩할 수 없습니다: {width}x{height}")

    stride = row_stride(width)
    pixel_array_size = stride * height
    file_size = PIXEL_DATA_OFFSET + pixel_array_size

    file_header = struct.pack(
        FILE_HEADER_FORMAT,
        b'BM',
        file_size,
        0,                  # Reserved
        0,                  # Reserved
        PIXEL_DATA_OFFSET,
    )
    info_header = struct.pack(
        INFO_HEADER_FORMAT,
        INFO_HEADER_SIZE,
        width,
        height,             # 양수 = bottom-up
        1,                  # Planes
        BITS_PER_PIXEL,
        0,                  # BI_RGB (무압축)
        pixel_array_size,
        PIXELS_PER_METER,
        PIXELS_PER_METER,
        0,                  # 팔레트 색상 수
        0,                  # 중요 색상 수
    )

    # 행 순서 뒤집기 + RGB -> BGR
    bgr = np.clip(raster[::-1, :, 2::-1], 0, 255).astype(np.uint8)

    pixels = np.zeros((height, stride), dtype=np.uint8)
    pixels[:, :width * 3] = bgr.reshape(height, width * 3)

    return file_header + info_header + pixels.tobytes()
