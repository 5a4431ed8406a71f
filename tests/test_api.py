import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from seshprep.blobstore import PROJECT_FILES_BUCKET
from seshprep.database import get_db
from seshprep.dependencies import get_blob_store, get_mailer
from seshprep.main import app

PROJECT = {"title": "Night Shift", "artist": "The Tapes", "bpm": 92, "sample_rate": 44100, "song_key": "D minor"}


@pytest.fixture
def client(db_session: Session, mailer, blobs):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_blob_store] = lambda: blobs
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _sign_up(client: TestClient, email="producer@example.com", password="secret123"):
    registered = client.post("/auth/register", json={"email": email, "password": password})
    assert registered.status_code == 201
    login = client.post("/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_register_login_and_profile(client: TestClient):
    headers = _sign_up(client, email="Producer@Example.com")

    me = client.get("/users/me", headers=headers)

    assert me.status_code == 200
    assert me.json()["email"] == "producer@example.com"
    assert client.post("/auth/register", json={"email": "producer@example.com", "password": "secret123"}).status_code == 409


def test_wrong_password_and_missing_token(client: TestClient):
    _sign_up(client)

    assert client.post("/auth/login", json={"email": "producer@example.com", "password": "nope"}).status_code == 401
    assert client.get("/users/me").status_code == 401
    assert client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_file_validation_endpoint(client: TestClient):
    headers = _sign_up(client)

    ok = client.post(
        "/validate-file-upload",
        json={"fileName": "Bass DI.wav", "fileSize": 1024, "mimeType": "audio/wav", "category": "stems"},
        headers=headers,
    )
    rejected = client.post(
        "/validate-file-upload",
        json={"fileName": "song.wav.exe", "fileSize": 1024, "mimeType": "audio/wav", "category": "stems"},
        headers=headers,
    )

    assert ok.status_code == 200
    assert ok.json() == {"valid": True, "sanitizedFileName": "Bass_DI.wav"}
    assert rejected.status_code == 400
    assert rejected.json()["detail"] == "Files with executable extensions are not allowed"


def test_projects_are_hidden_from_other_accounts(client: TestClient):
    producer = _sign_up(client)
    stranger = _sign_up(client, email="stranger@example.com")

    created = client.post("/projects", json=PROJECT, headers=producer)
    assert created.status_code == 201
    project_id = created.json()["id"]

    assert client.get(f"/projects/{project_id}", headers=producer).status_code == 200
    assert client.get(f"/projects/{project_id}", headers=stranger).status_code == 404
    assert client.get("/projects/9999", headers=producer).status_code == 404
    assert client.get("/projects", headers=stranger).json() == []


def test_upload_over_http(client: TestClient, blobs):
    headers = _sign_up(client)
    project_id = client.post("/projects", json=PROJECT, headers=headers).json()["id"]
    data = b"RIFF" + b"\x01" * 20

    opened = client.post(
        f"/projects/{project_id}/uploads",
        json={"file_name": "Vox Take.wav", "file_size": len(data), "mime_type": "audio/wav", "category": "stems"},
        headers=headers,
    )
    assert opened.status_code == 201
    session_id = opened.json()["id"]

    for index, chunk in enumerate((data[:12], data[12:])):
        sent = client.put(
            f"/uploads/{session_id}/chunks/{index}",
            content=chunk,
            headers={**headers, "Content-Type": "application/octet-stream"},
        )
        assert sent.status_code == 200
    completed = client.post(f"/uploads/{session_id}/complete", headers=headers)

    assert completed.status_code == 201
    body = completed.json()
    assert body["version"] == 1
    assert body["file_path"] == f"{project_id}/stems/1-Vox_Take.wav"
    assert blobs.read(PROJECT_FILES_BUCKET, body["file_path"]) == data

    listed = client.get(f"/projects/{project_id}/files", headers=headers)
    assert [f["version"] for f in listed.json()] == [1]
    assert client.delete(f"/files/{body['id']}", headers=headers).status_code == 204
    assert client.get(f"/projects/{project_id}/files", headers=headers).json() == []


def test_download_over_http(client: TestClient):
    headers = _sign_up(client)
    stranger = _sign_up(client, email="stranger@example.com")
    project_id = client.post("/projects", json=PROJECT, headers=headers).json()["id"]
    data = b"RIFF" + b"\x02" * 16
    session_id = client.post(
        f"/projects/{project_id}/uploads",
        json={"file_name": "Bounce.wav", "file_size": len(data), "mime_type": "audio/wav", "category": "mixes"},
        headers=headers,
    ).json()["id"]
    client.put(
        f"/uploads/{session_id}/chunks/0",
        content=data,
        headers={**headers, "Content-Type": "application/octet-stream"},
    )
    file_id = client.post(f"/uploads/{session_id}/complete", headers=headers).json()["id"]

    downloaded = client.get(f"/files/{file_id}/download", headers=headers)
    assert downloaded.status_code == 200
    assert downloaded.content == data
    assert downloaded.headers["content-type"] == "audio/wav"
    assert downloaded.headers["content-disposition"] == 'attachment; filename="Bounce.wav"'

    assert client.get(f"/files/{file_id}/download").status_code == 401
    assert client.get(f"/files/{file_id}/download", headers=stranger).status_code == 404
    assert client.get(f"/files/{file_id}/download-url", headers=stranger).status_code == 404

    link = client.get(f"/files/{file_id}/download-url", headers=headers)
    assert link.status_code == 200
    url = link.json()["url"]
    assert "/downloads/" in url
    assert client.get(url).content == data

    token = url.rsplit("/", 1)[-1]
    assert client.get("/users/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401
    assert client.get("/downloads/not-a-token").status_code == 403
