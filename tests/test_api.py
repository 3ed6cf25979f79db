import inspect
import logging
import tempfile
from datetime import datetime

from fastapi.testclient import TestClient

from roster_api import repositories
from roster_api.config import Settings
from roster_api.main import create_app
from roster_api.models import DEFAULT_SUBJECTS

CSV = b'Nama,ID\nZainab,3\nali,1\nBob,2\n,4\nTanpaId\n'


def _upload(client, name, content=CSV):
    files = {'csvFile': ('kelas.csv', content, 'text/csv')}
    return client.post('/api/kelas/upload', files=files, data={'namaKelas': name})


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.rstrip('Z'))


def test_upload_creates_class(client):
    r = _upload(client, '5 Bestari')
    assert r.status_code == 200
    body = r.json()
    assert body['message']
    kelas = body['kelasData']
    assert kelas['namaKelas'] == '5 Bestari'
    assert [p['nama'] for p in kelas['pelajar']] == ['ali', 'Bob', 'Zainab']
    assert kelas['pelajar'][0]['id'] == '1'
    assert kelas['pelajar'][0]['markah'] == {s: None for s in DEFAULT_SUBJECTS}
    assert kelas['createdAt'].endswith('Z')


def test_reupload_replaces_roster(client):
    _upload(client, '5 Bestari')
    r = _upload(client, '5 Bestari', b'nama,id\nChong,9\n')
    assert r.status_code == 200
    got = client.get('/api/kelas/5 Bestari').json()
    assert [p['nama'] for p in got['pelajar']] == ['Chong']


def test_list_classes_sorted(client):
    assert client.get('/api/kelas').json() == []
    for name in ('6 Cemerlang', '4 Amanah', '5 Bestari'):
        assert _upload(client, name).status_code == 200
    r = client.get('/api/kelas')
    assert r.status_code == 200
    assert r.json() == [{'namaKelas': '4 Amanah'}, {'namaKelas': '5 Bestari'}, {'namaKelas': '6 Cemerlang'}]


def test_get_missing_class_is_404(client):
    r = client.get('/api/kelas/Tiada')
    assert r.status_code == 404
    assert r.json()['detail'] == 'Kelas tidak ditemui.'


def test_upload_requires_file_and_name(client):
    r = client.post('/api/kelas/upload', data={'namaKelas': '5 Bestari'})
    assert r.status_code == 400
    files = {'csvFile': ('kelas.csv', CSV, 'text/csv')}
    r2 = client.post('/api/kelas/upload', files=files)
    assert r2.status_code == 400
    assert client.get('/api/kelas').json() == []


def test_upload_undecodable_file_is_500(client):
    r = _upload(client, '5 Bestari', b'nama,id\n\xff\xfe\n')
    assert r.status_code == 500
    assert 'CSV' in r.json()['detail']
    assert client.get('/api/kelas').json() == []


def test_upload_too_large_is_rejected(monkeypatch, db_url):
    monkeypatch.setenv('MAX_UPLOAD_BYTES', '16')
    with TestClient(create_app(settings=Settings(), database_url=db_url)) as c:
        r = _upload(c, '5 Bestari')
        assert r.status_code == 400


def test_upload_create_race_is_409(client, monkeypatch):
    assert _upload(client, '5 Bestari').status_code == 200
    # pretend the lookup lost the race with another create
    monkeypatch.setattr(repositories.ClassRepository, 'get_by_name', lambda self, name: None)
    r = _upload(client, '5 Bestari')
    assert r.status_code == 409


def test_save_replaces_roster_and_marks(client):
    created = _upload(client, '5 Bestari').json()['kelasData']
    payload = {
        'namaKelas': '5 Bestari',
        'pelajar': [
            {'nama': 'Ali', 'id': '1', 'markah': {'bm': 80, 'bi': None, 'kokurikulum': 70}},
            {'nama': 'Bob', 'id': 2, 'markah': {}},
        ],
    }
    r = client.post('/api/kelas/simpan', json=payload)
    assert r.status_code == 200
    saved = r.json()['savedData']
    assert [p['nama'] for p in saved['pelajar']] == ['Ali', 'Bob']
    assert saved['pelajar'][1]['id'] == '2'

    got = client.get('/api/kelas/5 Bestari').json()
    assert got['pelajar'][0]['markah'] == {'bm': 80, 'bi': None, 'kokurikulum': 70}
    assert _ts(got['updatedAt']) > _ts(created['updatedAt'])
    assert got['createdAt'] == created['createdAt']


def test_save_same_data_keeps_content(client):
    created = _upload(client, '5 Bestari').json()['kelasData']
    r = client.post('/api/kelas/simpan', json={'namaKelas': '5 Bestari', 'pelajar': created['pelajar']})
    assert r.status_code == 200
    saved = r.json()['savedData']
    assert saved['pelajar'] == created['pelajar']
    assert _ts(saved['updatedAt']) > _ts(created['updatedAt'])


def test_save_validation_and_missing_class(client):
    assert client.post('/api/kelas/simpan', json={'pelajar': []}).status_code == 400
    assert client.post('/api/kelas/simpan', json={'namaKelas': '5 Bestari'}).status_code == 400
    assert client.post('/api/kelas/simpan', json={'namaKelas': '', 'pelajar': []}).status_code == 400
    bad_student = {'namaKelas': '5 Bestari', 'pelajar': [{'id': '1'}]}
    assert client.post('/api/kelas/simpan', json=bad_student).status_code == 400

    r = client.post('/api/kelas/simpan', json={'namaKelas': 'Tiada', 'pelajar': []})
    assert r.status_code == 404
    # never creates
    assert client.get('/api/kelas').json() == []


def test_save_empty_list_clears_roster(client):
    _upload(client, '5 Bestari')
    r = client.post('/api/kelas/simpan', json={'namaKelas': '5 Bestari', 'pelajar': []})
    assert r.status_code == 200
    assert client.get('/api/kelas/5 Bestari').json()['pelajar'] == []


def test_delete_class(client):
    _upload(client, '5 Bestari')
    _upload(client, '6 Cemerlang')
    r = client.delete('/api/kelas/5 Bestari')
    assert r.status_code == 200
    assert r.json() == {'message': 'Kelas berjaya dipadam!'}
    assert client.get('/api/kelas/5 Bestari').status_code == 404
    assert client.delete('/api/kelas/5 Bestari').status_code == 404
    assert client.get('/api/kelas').json() == [{'namaKelas': '6 Cemerlang'}]


def test_delete_whitespace_name_is_404(client):
    _upload(client, '5 Bestari')
    assert client.delete('/api/kelas/%20').status_code == 404
    assert client.get('/api/kelas').json() == [{'namaKelas': '5 Bestari'}]


def test_request_id_header_exists(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers
    r2 = client.get('/api/kelas', headers={'X-Request-ID': 'abc123'})
    assert r2.headers['X-Request-ID'] == 'abc123'


def _spy_upload_close(monkeypatch):
    """Record which function closed each spooled upload file."""
    closed_by = []
    real_close = tempfile.SpooledTemporaryFile.close

    def close(self):
        closed_by.append(inspect.currentframe().f_back.f_code.co_name)
        return real_close(self)

    monkeypatch.setattr(tempfile.SpooledTemporaryFile, 'close', close)
    return closed_by


def test_upload_file_released_on_success(client, monkeypatch):
    closed_by = _spy_upload_close(monkeypatch)
    assert _upload(client, '5 Bestari').status_code == 200
    assert 'upload_roster' in closed_by


def test_upload_file_released_without_class_name(client, monkeypatch):
    closed_by = _spy_upload_close(monkeypatch)
    files = {'csvFile': ('kelas.csv', CSV, 'text/csv')}
    assert client.post('/api/kelas/upload', files=files).status_code == 400
    assert 'upload_roster' in closed_by


def test_upload_file_released_on_bad_content(client, monkeypatch):
    closed_by = _spy_upload_close(monkeypatch)
    assert _upload(client, '5 Bestari', b'nama,id\n\xff\n').status_code == 500
    assert 'upload_roster' in closed_by


def test_upload_file_released_when_too_large(monkeypatch, db_url):
    monkeypatch.setenv('MAX_UPLOAD_BYTES', '16')
    closed_by = _spy_upload_close(monkeypatch)
    with TestClient(create_app(settings=Settings(), database_url=db_url)) as c:
        assert _upload(c, '5 Bestari').status_code == 400
    assert 'upload_roster' in closed_by


def test_server_error_log_carries_request_id(client, caplog):
    caplog.set_level(logging.ERROR, logger='roster_api.api')
    files = {'csvFile': ('kelas.csv', b'nama,id\n\xff\n', 'text/csv')}
    r = client.post(
        '/api/kelas/upload', files=files, data={'namaKelas': '5 Bestari'},
        headers={'X-Request-ID': 'req-42'},
    )
    assert r.status_code == 500
    assert r.headers['X-Request-ID'] == 'req-42'
    assert any('request_id=req-42' in rec.getMessage() for rec in caplog.records)
