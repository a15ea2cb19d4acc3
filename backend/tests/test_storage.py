"""Tests for the object store and the signed /storage route."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from tarely.services import storage as storage_module
from tarely.services.storage import (
    AVATARS,
    TASK_ATTACHMENTS,
    InvalidSignatureError,
    ObjectStorage,
    StorageError,
    classify_mime_type,
    sanitize_filename,
)


@pytest.fixture()
def store(tmp_path):
    return ObjectStorage(tmp_path, "secret")


def _token(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


def test_upload_read_remove(store):
    store.upload(AVATARS, "u1/avatar.png", b"img")

    assert store.read(AVATARS, "u1/avatar.png") == b"img"
    store.remove(AVATARS, ["u1/avatar.png", "u1/missing.png"])
    assert not store.exists(AVATARS, "u1/avatar.png")


def test_upload_refuses_overwrite_without_upsert(store):
    store.upload(AVATARS, "a.png", b"1")

    with pytest.raises(StorageError):
        store.upload(AVATARS, "a.png", b"2")

    store.upload(AVATARS, "a.png", b"2", upsert=True)
    assert store.read(AVATARS, "a.png") == b"2"


def test_path_cannot_escape_bucket(store):
    with pytest.raises(StorageError):
        store.upload(AVATARS, "../task-attachments/x", b"")


def test_unknown_bucket(store):
    with pytest.raises(StorageError):
        store.read("secrets", "x")


def test_signed_url_round_trip(store):
    store.upload(TASK_ATTACHMENTS, "u/t/1_a b.pdf", b"pdf")

    url = store.create_signed_url(TASK_ATTACHMENTS, "u/t/1_a b.pdf")

    assert url.startswith("/storage/task-attachments/u/t/1_a%20b.pdf?token=")
    store.verify_token(TASK_ATTACHMENTS, "u/t/1_a b.pdf", _token(url))


def test_token_is_bound_to_object(store):
    url = store.create_signed_url(AVATARS, "one.png")

    with pytest.raises(InvalidSignatureError):
        store.verify_token(AVATARS, "two.png", _token(url))


def test_expired_token(store):
    url = store.create_signed_url(AVATARS, "one.png", expires_in=-10)

    with pytest.raises(InvalidSignatureError, match="expired"):
        store.verify_token(AVATARS, "one.png", _token(url))


def test_token_signed_with_other_secret(store, tmp_path):
    other = ObjectStorage(tmp_path, "other-secret")
    url = other.create_signed_url(AVATARS, "one.png")

    with pytest.raises(InvalidSignatureError):
        store.verify_token(AVATARS, "one.png", _token(url))


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("image/png", "image"),
        ("application/pdf", "document"),
        ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "document"),
        ("text/plain", "document"),
        ("application/zip", "other"),
        ("", "other"),
    ],
)
def test_classify_mime_type(mime, expected):
    assert classify_mime_type(mime) == expected


def test_sanitize_filename():
    assert sanitize_filename("my file (1).pdf") == "my_file__1_.pdf"


# ---------------------------------------------------------------------------
# /storage route
# ---------------------------------------------------------------------------


def test_route_serves_signed_object(client):
    storage_module.storage.upload(AVATARS, "route/ok.png", b"png-bytes", upsert=True)
    url = storage_module.storage.create_signed_url(AVATARS, "route/ok.png")

    resp = client.get(url)

    assert resp.status_code == 200
    assert resp.content == b"png-bytes"
    assert resp.headers["content-type"] == "image/png"


def test_route_rejects_bad_token(client):
    storage_module.storage.upload(AVATARS, "route/bad.png", b"x", upsert=True)

    resp = client.get("/storage/avatars/route/bad.png", params={"token": "garbage"})

    assert resp.status_code == 403


def test_route_missing_object_is_404(client):
    url = storage_module.storage.create_signed_url(AVATARS, "route/never.png")
    assert client.get(url).status_code == 404
