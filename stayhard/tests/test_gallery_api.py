from fastapi.testclient import TestClient

from stayhard.core.config import settings
from stayhard.main import app

client = TestClient(app)
H = {"X-User-Id": "photo-user"}
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def challenge_id(hdrs=H):
    return client.get("/v1/challenges/current", headers=hdrs).json()["data"]["challenge_id"]


def upload(cid, date="2024-01-01", content=PNG, content_type="image/png", hdrs=H, **extra):
    data = {"challenge_id": cid, "date": date}
    data.update(extra)
    return client.post(
        "/v1/gallery/upload",
        headers=hdrs,
        files={"photo": ("day1.png", content, content_type)},
        data=data,
    )


def test_upload_list_stream_delete():
    cid = challenge_id()
    resp = upload(cid, timezone="Asia/Kolkata", timezone_offset="330", local_timestamp="2024-01-01T21:00:00+05:30")
    assert resp.status_code == 201
    photo = resp.json()["data"]
    assert photo["size_bytes"] == len(PNG)
    assert photo["timezone"] == "Asia/Kolkata"
    assert photo["timezone_offset"] == 330
    assert photo["filename"].endswith(".png")
    assert photo["url"] == f"/v1/gallery/{photo['photo_id']}"

    listed = client.get("/v1/gallery", headers=H, params={"challenge_id": cid}).json()["data"]
    assert [p["photo_id"] for p in listed] == [photo["photo_id"]]

    streamed = client.get(photo["url"], headers=H)
    assert streamed.status_code == 200
    assert streamed.content == PNG
    assert streamed.headers["content-type"] == "image/png"

    deleted = client.delete(photo["url"], headers=H)
    assert deleted.status_code == 200
    assert client.get(photo["url"], headers=H).status_code == 404


def test_list_filters_by_date_range():
    cid = challenge_id()
    for day in ("2024-01-01", "2024-01-02", "2024-01-03"):
        assert upload(cid, date=day).status_code == 201

    resp = client.get("/v1/gallery", headers=H, params={"start_date": "2024-01-02", "end_date": "2024-01-03"})
    assert [p["date"] for p in resp.json()["data"]] == ["2024-01-02", "2024-01-03"]

    by_challenge = client.get(f"/v1/gallery/challenge/{cid}", headers=H).json()["data"]
    assert len(by_challenge) == 3


def test_empty_gallery_is_an_empty_list():
    resp = client.get("/v1/gallery", headers=H)
    assert resp.status_code == 200
    assert resp.json()["data"] == []


def test_non_image_upload_rejected():
    resp = upload(challenge_id(), content=b"hello", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_oversized_upload_rejected(monkeypatch):
    monkeypatch.setattr(settings, "MAX_PHOTO_BYTES", 16)
    resp = upload(challenge_id())
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "payload_too_large"


def test_upload_reads_no_more_than_limit(monkeypatch):
    from starlette.datastructures import UploadFile

    sizes = []
    original_read = UploadFile.read

    async def recording_read(self, size=-1):
        sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(UploadFile, "read", recording_read)
    monkeypatch.setattr(settings, "MAX_PHOTO_BYTES", 16)
    resp = upload(challenge_id(), content=b"x" * 4096)
    assert resp.status_code == 413
    assert sizes == [17]


def test_bad_date_label_rejected():
    resp = upload(challenge_id(), date="2024-13-40")
    assert resp.status_code in (400, 422)


def test_upload_to_foreign_challenge_forbidden():
    other_cid = challenge_id({"X-User-Id": "someone-else"})
    resp = upload(other_cid)
    assert resp.status_code == 403


def test_photos_are_owner_only():
    photo = upload(challenge_id()).json()["data"]
    other = {"X-User-Id": "snooper"}
    assert client.get(photo["url"], headers=other).status_code == 403
    assert client.delete(photo["url"], headers=other).status_code == 403
