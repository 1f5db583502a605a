#!/usr/bin/env python3
"""
이미지 -> e-ink BMP 변환기 웹 인터페이스 (HTTP API)

사용법:
    python3 web_viewer.py

요청마다 변환 파이프라인을 그대로 실행한다. 서버에는 이미지별 상태를 저장하지 않으므로
여러 장은 클라이언트가 한 장씩 (또는 병렬로) 요청하면 된다.
"""

import base64
import io
import math
import os
import traceback

from flask import Flask, jsonify, request, send_file
from werkzeug.utils import secure_filename

from bmp_viewer import color_statistics
from conversion_errors import ConversionError
from image_fitter import (
    FIT_MODES,
    CropRectangle,
    clamp_crop_position,
    initial_crop,
    resolve_target,
)
from img_to_bmp import convert_image

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max

ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'bmp', 'gif', 'webp'}
CROP_FIELDS = ('crop_x', 'crop_y', 'crop_width', 'crop_height')


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _parse_bool(value, default=True):
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def _parse_finite(value):
    """숫자로 변환, NaN/무한대는 거부"""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f'non-finite value: {value!r}')
    return number


def _parse_crop(form):
    """폼의 crop_x/crop_y/crop_width/crop_height -> CropRectangle (없으면 None)"""
    present = [name for name in CROP_FIELDS if form.get(name) not in (None, '')]
    if not present:
        return None
    if len(present) != len(CROP_FIELDS):
        raise ValueError(f"크롭 값이 부족합니다: {', '.join(CROP_FIELDS)} 모두 필요")
    x, y, width, height = (_parse_finite(form[name]) for name in CROP_FIELDS)
    return CropRectangle(x=x, y=y, width=width, height=height)


def _convert_upload():
    """업로드 파일을 변환. (ConversionResult, None) 또는 (None, 에러 응답)"""
    if 'file' not in request.files:
        return None, (jsonify({'error': 'No file provided'}), 400)

    file = request.files['file']
    if file.filename == '':
        return None, (jsonify({'error': 'No file selected'}), 400)

    if not allowed_file(file.filename):
        return None, (jsonify({'error': 'Unsupported file format'}), 400)

    mode = request.form.get('mode', 'scale')
    if mode not in FIT_MODES:
        return None, (jsonify({'error': f'Unsupported mode: {mode}'}), 400)

    try:
        crop = _parse_crop(request.form)
        result = convert_image(
            file.read(),
            secure_filename(file.filename) or 'image',
            mode=mode,
            dither=_parse_bool(request.form.get('dither')),
            orientation=request.form.get('orientation', 'auto'),
            crop=crop,
        )
    except ConversionError as e:
        print(f"Conversion failed ({file.filename}): {e}", flush=True)
        return None, (jsonify({'error': str(e), 'stage': e.stage}), 422)
    except ValueError as e:
        return None, (jsonify({'error': str(e)}), 400)

    return result, None


@app.route('/convert', methods=['POST'])
def convert():
    """이미지 -> BMP 변환, 미리보기와 BMP를 JSON으로 반환"""
    try:
        result, error = _convert_upload()
        if error:
            return error

        return jsonify({
            'success': True,
            'filename': result.filename,
            'width': result.width,
            'height': result.height,
            'orientation': result.orientation,
            'preview': result.preview_data_url(),
            'bmp': base64.b64encode(result.bmp_bytes).decode('ascii'),
            'stats': {
                'file_size': len(result.bmp_bytes),
                **color_statistics(result.preview),
            },
        })

    except Exception as e:
        error_detail = traceback.format_exc()
        print(f"Conversion error: {error_detail}", flush=True)
        return jsonify({'error': f'Conversion error: {str(e)}'}), 500


@app.route('/download', methods=['POST'])
def download():
    """이미지 -> BMP 변환 후 파일로 바로 다운로드"""
    try:
        result, error = _convert_upload()
        if error:
            return error

        return send_file(
            io.BytesIO(result.bmp_bytes),
            mimetype='image/bmp',
            as_attachment=True,
            download_name=result.filename,
        )

    except Exception as e:
        error_detail = traceback.format_exc()
        print(f"Download error: {error_detail}", flush=True)
        return jsonify({'error': f'Download error: {str(e)}'}), 500


@app.route('/initial-crop', methods=['POST'])
def initial_crop_area():
    """원본 크기와 방향으로 초기 크롭 영역 계산 (방향을 바꿀 때마다 다시 호출)"""
    payload = request.get_json(silent=True) or {}
    try:
        width = _parse_finite(payload['width'])
        height = _parse_finite(payload['height'])
        if width <= 0 or height <= 0:
            raise ValueError('width/height must be positive')
        target = resolve_target(width, height, payload.get('orientation', 'auto'))
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid request: {e}'}), 400

    crop = initial_crop(width, height, target)
    return jsonify({
        'crop': crop.to_dict(),
        'orientation': target.name,
        'width': target.width,
        'height': target.height,
    })


@app.route('/crop/move', methods=['POST'])
def move_crop():
    """드래그한 크롭 영역 위치를 원본 안쪽으로 보정"""
    payload = request.get_json(silent=True) or {}
    try:
        crop = CropRectangle(**{k: _parse_finite(payload['crop'][k]) for k in ('x', 'y', 'width', 'height')})
        moved = clamp_crop_position(
            crop,
            _parse_finite(payload['x']),
            _parse_finite(payload['y']),
            _parse_finite(payload['image_width']),
            _parse_finite(payload['image_height']),
        )
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid request: {e}'}), 400

    return jsonify({'crop': moved.to_dict()})


if __name__ == '__main__':
    # 포트 설정 (환경 변수에서 가져오거나 기본값 8000 사용)
    port = int(os.environ.get('PORT', 8000))
    # 배포 환경에서는 debug=False (환경 변수로 제어 가능)
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    print("=" * 60)
    print("이미지 -> e-ink BMP 변환기 웹 서버 시작")
    print("=" * 60)
    print()
    print("API 주소:")
    print(f"  http://localhost:{port}/convert")
    print()
    print("종료하려면 Ctrl+C를 누르세요")
    print("=" * 60)

    app.run(debug=debug, host='0.0.0.0', port=port)
