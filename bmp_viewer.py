#!/usr/bin/env python3
"""
BMP 파일 검증 및 미리보기 도구

사용법:
    python3 bmp_viewer.py input.bmp [output.png]
"""

import struct
import sys
import argparse

import numpy as np
from PIL import Image

from bmp_encoder import (
    FILE_HEADER_FORMAT,
    FILE_HEADER_SIZE,
    INFO_HEADER_FORMAT,
    INFO_HEADER_SIZE,
    row_stride,
)
from floyd_steinberg import COLOR_NAMES, EINK_PALETTE, palette_indices
from image_fitter import TARGET_FRAMES


def read_bmp(data):
    """
    24비트 무압축 BMP를 HxWx3 RGB 배열로 읽기

    bottom-up(높이 양수), top-down(높이 음수) 모두 허용
    """
    header_size = FILE_HEADER_SIZE + INFO_HEADER_SIZE
    if len(data) < header_size:
        raise ValueError(f"BMP 헤더보다 짧은 파일입니다: {len(data)} bytes")

    signature, file_size, _, _, offset = struct.unpack_from(FILE_HEADER_FORMAT, data, 0)
    if signature != b'BM':
        raise ValueError(f"BMP 시그니처가 아닙니다: {signature!r}")

    (dib_size, width, height, planes, bits,
     compression, _, _, _, _, _) = struct.unpack_from(INFO_HEADER_FORMAT, data, FILE_HEADER_SIZE)

    if dib_size < INFO_HEADER_SIZE:
        raise ValueError(f"지원하지 않는 DIB 헤더 크기: {dib_size}")
    if planes != 1 or bits != 24:
        raise ValueError(f"24비트 BMP만 지원합니다 (planes={planes}, bits={bits})")
    if compression != 0:
        raise ValueError(f"압축된 BMP는 지원하지 않습니다 (compression={compression})")
    if width <= 0 or height == 0:
        raise ValueError(f"잘못된 크기: {width}x{height}")

    top_down = height < 0
    height = abs(height)
    stride = row_stride(width)

    if offset + stride * height > len(data):
        raise ValueError(
            f"픽셀 데이터가 부족합니다: 필요 {offset + stride * height}, 실제 {len(data)} bytes"
        )
    if file_size != len(data):
        print(f"⚠️  경고: 헤더의 파일 크기({file_size})와 실제 크기({len(data)})가 다릅니다")

    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height, offset=offset)
    rows = rows.reshape(height, stride)[:, :width * 3].reshape(height, width, 3)
    if not top_down:
        rows = rows[::-1]

    # BGR -> RGB
    return np.ascontiguousarray(rows[:, :, ::-1])


def color_statistics(rgb, palette=None):
    """팔레트 색상별 픽셀 수와 비율, 팔레트에 없는 픽셀 수"""
    palette = EINK_PALETTE if palette is None else palette
    indices = palette_indices(rgb, palette)
    total = indices.size

    colors = {}
    for i in range(len(palette)):
        count = int(np.count_nonzero(indices == i))
        colors[COLOR_NAMES.get(i, str(i))] = {
            'count': count,
            'percentage': round(count / total * 100, 2) if total else 0.0,
        }

    return {
        'total': int(total),
        'colors': colors,
        'off_palette': int(np.count_nonzero(indices < 0)),
    }


def validate_and_preview(bmp_file, output_png=None):
    """BMP 파일 검증 및 미리보기 생성"""

    print(f"BMP 파일 로딩: {bmp_file}")
    print("=" * 50)

    with open(bmp_file, 'rb') as f:
        data = f.read()

    print(f"\n파일 크기: {len(data):,} bytes")

    try:
        rgb = read_bmp(data)
    except ValueError as e:
        print(f"⚠️  경고: {e}")
        return False

    height, width = rgb.shape[:2]
    print(f"이미지 크기: {width}x{height}")

    frame_sizes = {frame.size: name for name, frame in TARGET_FRAMES.items()}
    if (width, height) in frame_sizes:
        print(f"✓ 액자 해상도 정상 ({frame_sizes[(width, height)]})")
    else:
        print("⚠️  경고: 800x480 / 480x800 해상도가 아닙니다!")
        return False

    stats = color_statistics(rgb)

    print("\n색상 분포:")
    print("-" * 50)
    print(f"{'인덱스':<8} {'색상':<10} {'픽셀 수':<15} {'비율':<10}")
    print("-" * 50)
    for i, (name, info) in enumerate(stats['colors'].items()):
        print(f"{i:<8} {name:<10} {info['count']:<15,} {info['percentage']:>6.2f}%")

    if stats['off_palette']:
        print(f"\n⚠️  팔레트에 없는 색상의 픽셀: {stats['off_palette']:,}개")
        return False
    print("\n✓ 모든 픽셀이 7색 팔레트 색상")

    if output_png:
        Image.fromarray(rgb).save(output_png, format='PNG')
        print(f"\n✓ 미리보기 저장: {output_png}")

    print("\n" + "=" * 50)
    print("검증 완료!")

    return True


def main():
    parser = argparse.ArgumentParser(
        description='e-ink 액자용 BMP 파일 검증 및 미리보기 생성',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
예제:
  # BMP 파일 검증만 수행
  python3 bmp_viewer.py photo_scale_output.bmp

  # 검증하고 PNG 미리보기 저장
  python3 bmp_viewer.py photo_scale_output.bmp preview.png
        """
    )

    parser.add_argument('bmp_file', help='검증할 BMP 파일 경로')
    parser.add_argument('output_png', nargs='?', help='미리보기 PNG 파일 경로 (선택)')

    args = parser.parse_args()

    try:
        success = validate_and_preview(args.bmp_file, args.output_png)
        sys.exit(0 if success else 1)
    except FileNotFoundError:
        print(f"\n오류: 파일을 찾을 수 없습니다 - {args.bmp_file}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
