"""URLs acessíveis e envio de imagens ao storage."""
import pytest

from app.infra.storage_s3 import StorageError
from app.services.media import (
    ImagePayload,
    accessible_url,
    accessible_urls,
    file_extension,
    upload_images,
)

from fakes import FakeStorage


def _payloads(*names):
    return [ImagePayload(filename=n, content_type="image/png", data=b"img") for n in names]


def test_accessible_url_empty_key():
    assert accessible_url(FakeStorage(), None) is None
    assert accessible_url(FakeStorage(), "") is None


def test_accessible_url_keeps_existing_urls():
    url = "http://externo.test/a.png"
    assert accessible_url(FakeStorage(), url) == url


def test_accessible_url_prefers_public_url():
    storage = FakeStorage(public_base_url="https://cdn.test/b")
    storage.presign_error = AssertionError("não deveria assinar")
    assert accessible_url(storage, "products/1/a.png") == "https://cdn.test/b/products/1/a.png"


def test_accessible_url_falls_back_to_signed_url():
    assert accessible_url(FakeStorage(), "products/1/a.png") == (
        "https://signed.test/products/1/a.png?expires=3600"
    )


def test_accessible_url_returns_none_when_signing_fails():
    storage = FakeStorage()
    storage.presign_error = StorageError("sem credenciais")
    assert accessible_url(storage, "products/1/a.png") is None


def test_accessible_url_survives_unexpected_errors():
    storage = FakeStorage()
    storage.presign_error = RuntimeError("boom")
    assert accessible_url(storage, "products/1/a.png") is None


def test_accessible_urls_drops_missing_and_keeps_order():
    storage = FakeStorage()
    storage.presign_error = StorageError("sem credenciais")
    keys = ["https://a.test/1.png", "products/1/x.png", "https://a.test/2.png"]
    assert accessible_urls(storage, keys) == ["https://a.test/1.png", "https://a.test/2.png"]
    assert accessible_urls(storage, None) == []


@pytest.mark.parametrize("filename, expected", [
    ("foto.PNG", "PNG"),
    ("arquivo.tar.gz", "gz"),
    ("sem_extensao", "jpg"),
    ("", "jpg"),
    (None, "jpg"),
])
def test_file_extension(filename, expected):
    assert file_extension(filename) == expected


def test_upload_images_builds_keys_in_order():
    storage = FakeStorage()
    result = upload_images(storage, _payloads("a.png", "b.webp"), key_prefix="/variations/7/")
    assert not result.interrupted
    assert len(result.keys) == 2
    assert result.keys[0].startswith("variations/7/") and result.keys[0].endswith("_0.png")
    assert result.keys[1].endswith("_1.webp")
    assert set(storage.objects) == set(result.keys)


@pytest.mark.parametrize("error", [
    StorageError("forbidden", status_code=403),
    StorageError("erro", status_code=500),
    StorageError("new row violates row-level security policy"),
    StorageError("Internal Server Error"),
])
def test_upload_images_stops_on_tolerable_errors(error):
    storage = FakeStorage()
    storage.fail_with = error
    storage.fail_after = 1
    result = upload_images(storage, _payloads("a.png", "b.png", "c.png"), key_prefix="products/1")
    assert result.interrupted
    assert len(result.keys) == 1
    assert storage.deleted == []


def test_upload_images_cleans_up_on_hard_error():
    storage = FakeStorage()
    storage.fail_with = StorageError("NoSuchBucket", status_code=404)
    storage.fail_after = 2
    with pytest.raises(StorageError):
        upload_images(storage, _payloads("a.png", "b.png", "c.png"), key_prefix="products/1")
    assert len(storage.deleted) == 2
    assert storage.objects == {}


def test_storage_error_classification():
    assert StorageError("x", status_code=403).forbidden
    assert StorageError("row-level security").forbidden
    assert not StorageError("x", status_code=500).forbidden
    assert not StorageError("x", status_code=404).tolerable
