import pytest

from setu.config import MAX_UPLOAD_BYTES
from setu.errors import InternalError, NotFoundError, ValidationError
from setu.uploads import DOCUMENT, LocalObjectStore, discard, store_all, validate_image, validate_upload


@pytest.mark.parametrize("filename,content", [
    ("notes.txt", b"x"), ("noext", b"x"), ("empty.png", b""),
])
def test_validate_image_rejects(filename, content):
    with pytest.raises(ValidationError):
        validate_image(filename, content)


def test_validate_image_size_limit():
    with pytest.raises(ValidationError):
        validate_image("big.jpg", b"0" * (MAX_UPLOAD_BYTES + 1))
    assert validate_image("Photo.JPG", b"data") == ".jpg"


def test_store_resolve_delete(tmp_path):
    store = LocalObjectStore(tmp_path, base_url="https://cdn.example/")
    obj = store.store(b"img", "a.png", "screenshots")
    assert obj.url == f"https://cdn.example/uploads/{obj.locator}"
    folder, filename = obj.locator.split("/")
    assert store.resolve(folder, filename).read_bytes() == b"img"
    store.delete(obj.locator)
    with pytest.raises(NotFoundError):
        store.resolve(folder, filename)
    store.delete(obj.locator)


@pytest.mark.parametrize("folder,filename", [("..", "secret"), ("screenshots", "../x.png"), ("a/b", "x.png")])
def test_resolve_refuses_traversal(tmp_path, folder, filename):
    store = LocalObjectStore(tmp_path)
    with pytest.raises(ValidationError):
        store.resolve(folder, filename)


def test_store_rejects_nested_folder(tmp_path):
    with pytest.raises(ValidationError):
        LocalObjectStore(tmp_path).store(b"img", "a.png", "gallery/2024")


def test_serve_route(client, store):
    obj = store.store(b"\x89PNG", "a.png", "gallery")
    resp = client.get(f"/uploads/{obj.locator}")
    assert resp.status_code == 200
    assert resp.content == b"\x89PNG"
    assert resp.headers["content-type"] == "image/png"
    assert client.get("/uploads/gallery/missing.png").status_code == 404


def test_documents_accept_only_pdf():
    assert validate_upload("Gita.PDF", b"%PDF", DOCUMENT) == ".pdf"
    with pytest.raises(ValidationError):
        validate_upload("photo.png", b"png", DOCUMENT)
    with pytest.raises(ValidationError):
        validate_upload("book.pdf", b"%PDF")


def test_store_all_validates_before_writing(tmp_path):
    store = LocalObjectStore(tmp_path)
    with pytest.raises(ValidationError):
        store_all(store, [("a.png", b"x"), ("b.txt", b"y")], "gallery")
    assert not (tmp_path / "gallery").exists()
    stored = store_all(store, [("a.png", b"x"), ("b.jpg", b"y")], "gallery")
    assert len(list((tmp_path / "gallery").iterdir())) == 2
    discard(store, [obj.locator for obj in stored] + [None])
    assert list((tmp_path / "gallery").iterdir()) == []


class BrokenDeleteStore(LocalObjectStore):
    def delete(self, locator, kind=None):
        raise InternalError("Delete failed")


def test_discard_logs_and_continues(tmp_path, caplog):
    store = BrokenDeleteStore(tmp_path)
    discard(store, ["gallery/a.png", "gallery/b.png"])
    assert caplog.text.count("Could not delete stored object") == 2
