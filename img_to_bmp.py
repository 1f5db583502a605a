#!/usr/bin/env python3
"""
이미지를 7색 e-ink 액자용 24비트 BMP로 변환하는 스크립트

사용법:
    python3 img_to_bmp.py photo.jpg [more.png ...] [--out DIR] [--mode scale|cut]
                          [--orientation auto|landscape|portrait] [--no-dither]
                          [--crop X Y W H]

파이프라인:
    디코딩 -> 해상도 결정 -> fit (800x480 / 480x800) -> Floyd-Steinberg 7색 양자화 -> BMP 인코딩
"""

import argparse
import base64
import io
import os
import re
import sys
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from bmp_encoder import encode_bmp
from conversion_errors import ConversionError, DecodeError
from floyd_steinberg import COLOR_NAMES, palette_indices, quantize
from image_fitter import FIT_MODES, ORIENTATIONS, CropRectangle, fit, resolve_target, validate_crop


@dataclass
class ConversionResult:
    """한 장의 변환 결과"""
    bmp_bytes: bytes
    preview: np.ndarray
    width: int
    height: int
    orientation: str
    filename: str

    def preview_png(self):
        """미리보기 PNG bytes (브라우저에서는 BMP보다 PNG 표시가 안정적)"""
        buffer = io.BytesIO()
        Image.fromarray(self.preview).save(buffer, format='PNG')
        return buffer.getvalue()

    def preview_data_url(self):
        encoded = base64.b64encode(self.preview_png()).decode('ascii')
        return f'data:image/png;base64,{encoded}'


def load_image(data):
    """이미지 bytes 디코딩 (EXIF 회전 정보 반영)"""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        return ImageOps.exif_transpose(img)
    except UnidentifiedImageError as e:
        raise DecodeError(f"지원하지 않는 이미지 형식입니다: {e}") from e
    except Exception as e:
        # 잘린 파일 등 디코더 내부 오류
        raise DecodeError(f"이미지를 읽을 수 없습니다: {e}") from e


def get_output_filename(original_name, mode='scale'):
    """확장자 제거 후 '_{mode}_output.bmp' 추가 (예: photo.jpg -> photo_scale_output.bmp)"""
    base_name = re.sub(r'\.[^/.]+$', '', original_name)
    return f'{base_name}_{mode}_output.bmp'


def convert_image(data, filename, mode='scale', dither=True, orientation='auto', crop=None):
    """
    이미지 bytes를 BMP로 변환

    Args:
        data: 원본 이미지 bytes (JPG, PNG 등 Pillow가 읽을 수 있는 형식)
        filename: 원본 파일명 (출력 파일명 생성용)
        mode: 'scale' 또는 'cut'
        dither: Floyd-Steinberg 디더링 사용 여부
        orientation: 'auto', 'landscape', 'portrait'
        crop: CropRectangle (지정하면 해당 영역을 캔버스 전체로)

    Returns:
        ConversionResult
    """
    if mode not in FIT_MODES:
        raise ValueError(f"지원하지 않는 모드: {mode!r} (scale, cut)")

    img = load_image(data)
    target = resolve_target(img.width, img.height, orientation)

    if crop is not None:
        validate_crop(crop, img.width, img.height, target)

    fitted = fit(img, target, mode=mode, crop=crop)
    quantized = quantize(fitted, dither=dither)
    bmp_bytes = encode_bmp(quantized)

    return ConversionResult(
        bmp_bytes=bmp_bytes,
        preview=quantized,
        width=target.width,
        height=target.height,
        orientation=target.name,
        filename=get_output_filename(filename, mode),
    )


def convert_file(input_path, output_dir=None, mode='scale', dither=True, orientation='auto', crop=None):
    """파일 단위 변환 (진행 상황 출력). 저장한 BMP 경로 반환"""
    print(f"입력 파일 로딩: {input_path}")
    print(f"디더링: {'사용' if dither else '사용 안 함'}")

    with open(input_path, 'rb') as f:
        data = f.read()

    result = convert_image(
        data,
        os.path.basename(input_path),
        mode=mode,
        dither=dither,
        orientation=orientation,
        crop=crop,
    )
    print(f"출력 해상도: {result.width}x{result.height} ({result.orientation})")

    # 값 분포 확인
    indices = palette_indices(result.preview)
    unique, counts = np.unique(indices, return_counts=True)
    print("\n색상 분포:")
    for value, count in zip(unique, counts):
        percentage = (count / indices.size) * 100
        print(f"  {COLOR_NAMES.get(int(value), value):<7}: {count:7d} 픽셀 ({percentage:5.2f}%)")

    if output_dir is None:
        output_dir = os.path.dirname(os.path.abspath(input_path))
    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, result.filename)

    with open(output_path, 'wb') as f:
        f.write(result.bmp_bytes)

    print(f"\n변환 완료: {output_path}")
    print(f"파일 크기: {len(result.bmp_bytes):,} bytes")
    return output_path


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='이미지를 7색 e-ink 액자용 24비트 BMP (800x480 / 480x800)로 변환',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
예제:
  # 디더링 사용 (기본값), 가로/세로 자동 판단
  python3 img_to_bmp.py photo.jpg

  # 여러 장 변환, 결과는 out 폴더에
  python3 img_to_bmp.py a.jpg b.png --out out

  # 세로 고정, 디더링 없이
  python3 img_to_bmp.py photo.jpg --orientation portrait --no-dither

  # 원본의 (100, 50) 위치에서 1000x600 영역만 사용
  python3 img_to_bmp.py photo.jpg --crop 100 50 1000 600

색상 팔레트:
  검정, 흰색, 초록, 파랑, 빨강, 노랑, 주황
        """
    )

    parser.add_argument('inputs', nargs='+', help='입력 이미지 파일 경로')
    parser.add_argument('--out', default=None, help='출력 폴더 (기본값: 입력 파일과 같은 폴더)')
    parser.add_argument('--mode', choices=FIT_MODES, default='scale',
                        help='맞춤 모드 (기본값: scale, 현재 cut도 동일하게 동작)')
    parser.add_argument('--orientation', choices=ORIENTATIONS, default='auto',
                        help='출력 방향 (기본값: auto, 가로가 더 길면 landscape)')
    parser.add_argument('--no-dither', action='store_true',
                        help='디더링 비활성화 (기본값: Floyd-Steinberg 디더링 사용)')
    parser.add_argument('--crop', nargs=4, type=float, metavar=('X', 'Y', 'W', 'H'),
                        help='원본 픽셀 좌표의 크롭 영역 (입력이 한 장일 때만)')

    args = parser.parse_args(argv)

    if args.crop and len(args.inputs) > 1:
        parser.error('--crop은 입력 파일이 한 장일 때만 사용할 수 있습니다')

    crop = CropRectangle(*args.crop) if args.crop else None

    failed = 0
    for input_path in args.inputs:
        try:
            convert_file(
                input_path,
                args.out,
                mode=args.mode,
                dither=not args.no_dither,
                orientation=args.orientation,
                crop=crop,
            )
        except FileNotFoundError as e:
            failed += 1
            print(f"\n오류: 파일을 찾을 수 없습니다 - {e}", file=sys.stderr)
        except ConversionError as e:
            failed += 1
            print(f"\n오류 ({input_path}): {e}", file=sys.stderr)
        print()

    if failed:
        print(f"{len(args.inputs) - failed}/{len(args.inputs)}장 변환 성공", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
