"""
web_viewer 모듈 테스트 (Flask test client)
"""

import base64
import io

import pytest

from web_viewer import app

LANDSCAPE_BMP_SIZE = 54 + 2400 * 480


@pytest.fixture
def client():
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def _post(client, url, data_bytes, filename='photo.png', **form):
    data = {'file': (io.BytesIO(data_bytes), filename)}
    data.update(form)
    return client.post(url, data=data, content_type='multipart/form-data')


class TestConvertEndpoint:
    """POST /convert"""

    def test_convert_returns_preview_and_bmp(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300), dither='false')

        assert response.status_code == 200
        payload = response.get_json()
        assert payload['success'] is True
        assert payload['filename'] == 'photo_scale_output.bmp'
        assert (payload['width'], payload['height'], payload['orientation']) == (800, 480, 'landscape')
        assert payload['preview'].startswith('data:image/png;base64,')

        bmp = base64.b64decode(payload['bmp'])
        assert bmp[:2] == b'BM'
        assert len(bmp) == payload['stats']['file_size'] == LANDSCAPE_BMP_SIZE
        assert payload['stats']['colors']['red']['count'] == 800 * 480
        assert payload['stats']['off_palette'] == 0

    def test_orientation_and_mode_options(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300),
                         dither='false', mode='cut', orientation='portrait')

        payload = response.get_json()
        assert payload['filename'] == 'photo_cut_output.bmp'
        assert (payload['width'], payload['height']) == (480, 800)

    def test_crop_fields(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300), dither='false',
                         crop_x='0', crop_y='30', crop_width='400', crop_height='240')
        assert response.status_code == 200

    def test_missing_file(self, client):
        response = client.post('/convert', data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'No file provided'

    def test_unsupported_extension(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(10, 10), filename='notes.txt')
        assert response.status_code == 400

    def test_unsupported_mode(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(10, 10), mode='stretch')
        assert response.status_code == 400

    def test_undecodable_image(self, client):
        response = _post(client, '/convert', b'garbage bytes')

        assert response.status_code == 422
        assert response.get_json()['stage'] == 'decode'

    def test_invalid_crop(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300),
                         crop_x='0', crop_y='0', crop_width='300', crop_height='300')

        assert response.status_code == 422
        assert response.get_json()['stage'] == 'fit'

    def test_incomplete_crop_fields(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300), crop_x='0')
        assert response.status_code == 400


class TestDownloadEndpoint:
    """POST /download"""

    def test_download_returns_bmp_attachment(self, client, make_image_bytes):
        response = _post(client, '/download', make_image_bytes(300, 400), filename='tall.jpg',
                         dither='false')

        assert response.status_code == 200
        assert response.mimetype == 'image/bmp'
        assert 'tall_scale_output.bmp' in response.headers['Content-Disposition']
        assert response.data[:2] == b'BM'
        assert len(response.data) == 54 + 1440 * 800


class TestCropEndpoints:
    """POST /initial-crop, /crop/move"""

    def test_initial_crop(self, client):
        response = client.post('/initial-crop', json={'width': 1000, 'height': 1000, 'orientation': 'landscape'})

        payload = response.get_json()
        assert payload['orientation'] == 'landscape'
        assert payload['crop'] == pytest.approx({'x': 0, 'y': 200, 'width': 1000, 'height': 600})

    def test_initial_crop_auto_orientation(self, client):
        response = client.post('/initial-crop', json={'width': 1000, 'height': 1000})
        assert response.get_json()['orientation'] == 'portrait'

    def test_initial_crop_invalid_request(self, client):
        assert client.post('/initial-crop', json={'width': 0, 'height': 10}).status_code == 400
        assert client.post('/initial-crop', json={}).status_code == 400

    def test_move_crop_is_clamped(self, client):
        response = client.post('/crop/move', json={
            'crop': {'x': 0, 'y': 200, 'width': 1000, 'height': 600},
            'x': -50,
            'y': 500,
            'image_width': 1000,
            'image_height': 1000,
        })

        assert response.status_code == 200
        assert response.get_json()['crop'] == {'x': 0, 'y': 400, 'width': 1000, 'height': 600}

    def test_move_crop_invalid_request(self, client):
        assert client.post('/crop/move', json={'x': 1}).status_code == 400

    @pytest.mark.parametrize('value', ['nan', 'inf', float('nan')])
    def test_move_crop_rejects_non_finite_values(self, client, value):
        response = client.post('/crop/move', json={
            'crop': {'x': 0, 'y': 200, 'width': 1000, 'height': 600},
            'x': value,
            'y': 500,
            'image_width': 1000,
            'image_height': 1000,
        })

        assert response.status_code == 400
        assert 'non-finite' in response.get_json()['error']

    def test_initial_crop_rejects_non_finite_size(self, client):
        assert client.post('/initial-crop', json={'width': 'nan', 'height': 10}).status_code == 400
        assert client.post('/initial-crop', json={'width': 10, 'height': 'inf'}).status_code == 400

    def test_convert_rejects_non_finite_crop(self, client, make_image_bytes):
        response = _post(client, '/convert', make_image_bytes(400, 300),
                         crop_x='nan', crop_y='0', crop_width='400', crop_height='240')
        assert response.status_code == 400
