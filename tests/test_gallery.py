import pytest

from setu import gallery, library
from setu.config import MAX_FILES_PER_UPLOAD
from setu.errors import InternalError, NotFoundError, ValidationError
from setu.uploads import IMAGE, LocalObjectStore


def _files(*names):
    return [(n, f"bytes-{n}".encode()) for n in names]


def test_folders_get_slugs_and_append(db):
    a = gallery.create_gallery_folder(db, "Deepotsav 2024")
    b = gallery.create_gallery_folder(db, "Deepotsav 2024")
    assert (a["slug"], b["slug"]) == ("deepotsav-2024", "deepotsav-2024-2")
    assert (a["orderIndex"], b["orderIndex"]) == (0, 1)
    assert gallery.reorder_gallery_folders(db, b["id"], "up") == [b["id"], a["id"]]


def test_upload_sets_cover_and_orders(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    added = gallery.add_images(db, store, folder["id"], _files("one.png", "two.jpg"))
    assert [i["name"] for i in added] == ["one", "two"]
    assert [i["orderIndex"] for i in added] == [0, 1]
    cover = gallery.list_gallery_folders(db)[0]["coverUrl"]
    assert cover == added[0]["url"]

    more = gallery.add_images(db, store, folder["id"], _files("three.webp"))
    assert more[0]["orderIndex"] == 2
    assert gallery.list_gallery_folders(db)[0]["coverUrl"] == cover


def test_upload_limits(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    with pytest.raises(ValidationError):
        gallery.add_images(db, store, folder["id"], [])
    with pytest.raises(ValidationError):
        gallery.add_images(db, store, folder["id"], _files(*[f"{i}.png" for i in range(MAX_FILES_PER_UPLOAD + 1)]))
    with pytest.raises(NotFoundError):
        gallery.add_images(db, store, 999, _files("a.png"))


def test_disabled_content_hidden_from_public(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    first, second = gallery.add_images(db, store, folder["id"], _files("a.png", "b.png"))
    gallery.set_image_enabled(db, second["id"], False)
    assert [i["id"] for i in gallery.list_images(db, folder["id"])] == [first["id"]]
    assert len(gallery.list_images(db, folder["id"], include_disabled=True)) == 2
    gallery.set_gallery_folder_enabled(db, folder["id"], False)
    assert gallery.list_gallery_folders(db) == []
    with pytest.raises(NotFoundError):
        gallery.list_images(db, folder["id"])


def test_delete_image_clears_cover_and_file(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    (image,) = gallery.add_images(db, store, folder["id"], _files("a.png"))
    gallery.delete_image(db, store, image["id"])
    assert gallery.list_gallery_folders(db)[0]["coverUrl"] is None
    assert not list((store.root / "gallery").iterdir())


def test_delete_folder_removes_images(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    gallery.add_images(db, store, folder["id"], _files("a.png", "b.png"))
    gallery.delete_gallery_folder(db, store, folder["id"])
    assert db.query("SELECT * FROM gallery_images") == []
    assert not list((store.root / "gallery").iterdir())
    with pytest.raises(NotFoundError):
        gallery.delete_gallery_folder(db, store, folder["id"])


def test_reorder_images(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    ids = [i["id"] for i in gallery.add_images(db, store, folder["id"], _files("a.png", "b.png", "c.png"))]
    assert gallery.reorder_images(db, ids[0], new_index=5) == [ids[1], ids[2], ids[0]]
    assert gallery.reorder_images(db, 999, "up") == []


def test_gallery_routes(client, auth):
    folder = client.post("/gallery/folders", json={"name": "Seva"}, headers=auth("admin")).json()
    resp = client.post(
        f"/gallery/folders/{folder['id']}/images",
        files=[("files", ("a.png", b"a", "image/png")), ("files", ("b.gif", b"b", "image/gif"))],
        headers=auth("admin"),
    )
    assert resp.status_code == 201
    assert len(resp.json()) == 2
    listed = client.get(f"/gallery/folders/{folder['id']}/images").json()
    assert [i["name"] for i in listed] == ["a", "b"]
    assert client.get(listed[0]["url"].replace("http://testserver", "")).content == b"a"
    bad = client.post(f"/gallery/folders/{folder['id']}/images",
                      files=[("files", ("a.exe", b"a", "application/octet-stream"))], headers=auth("admin"))
    assert bad.status_code == 400


def _stored_files(store):
    target = store.root / "gallery"
    return list(target.iterdir()) if target.exists() else []


class FlakyStore(LocalObjectStore):
    """Fails on the second store call."""

    def __init__(self, root):
        super().__init__(root, base_url="http://testserver")
        self.calls = 0

    def store(self, content, filename, folder, kind=IMAGE):
        self.calls += 1
        if self.calls == 2:
            raise InternalError("Upload failed")
        return super().store(content, filename, folder, kind)


def test_bad_file_rejects_whole_batch(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    with pytest.raises(ValidationError):
        gallery.add_images(db, store, folder["id"], [("a.png", b"x"), ("b.txt", b"y")])
    assert _stored_files(store) == []
    assert gallery.list_images(db, folder["id"]) == []


def test_store_failure_discards_earlier_files(db, tmp_path):
    flaky = FlakyStore(tmp_path / "flaky")
    folder = gallery.create_gallery_folder(db, "Seva")
    with pytest.raises(InternalError):
        gallery.add_images(db, flaky, folder["id"], _files("a.png", "b.png", "c.png"))
    assert _stored_files(flaky) == []
    assert gallery.list_images(db, folder["id"]) == []


def test_insert_failure_discards_stored_files(db, store, monkeypatch):
    folder = gallery.create_gallery_folder(db, "Seva")

    def broken_out(row):
        raise RuntimeError("row serialization failed")

    monkeypatch.setattr(library, "item_out", broken_out)
    with pytest.raises(RuntimeError):
        gallery.add_images(db, store, folder["id"], _files("a.png", "b.png"))
    monkeypatch.undo()
    assert _stored_files(store) == []
    assert gallery.list_images(db, folder["id"]) == []


def test_root_images_live_outside_folders(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    gallery.add_images(db, store, folder["id"], _files("in-folder.png"))
    first, second = gallery.add_root_images(db, store, _files("home1.png", "home2.jpg"))
    assert (first["folderId"], first["orderIndex"], second["orderIndex"]) == (None, 0, 1)
    assert first["size"] == len(b"bytes-home1.png")
    assert gallery.reorder_images(db, second["id"], "up") == [second["id"], first["id"]]
    gallery.set_image_enabled(db, first["id"], False)
    assert [i["name"] for i in gallery.list_root_images(db)] == ["home2"]
    assert len(gallery.list_root_images(db, include_disabled=True)) == 2


def test_set_cover(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    other = gallery.create_gallery_folder(db, "Other")
    first, second = gallery.add_images(db, store, folder["id"], _files("a.png", "b.png"))
    (foreign,) = gallery.add_images(db, store, other["id"], _files("c.png"))
    assert gallery.set_cover(db, folder["id"], second["id"])["coverUrl"] == second["url"]
    with pytest.raises(NotFoundError):
        gallery.set_cover(db, folder["id"], foreign["id"])
    with pytest.raises(NotFoundError):
        gallery.set_cover(db, 999, first["id"])


def test_folder_listing_counts_images(db, store):
    folder = gallery.create_gallery_folder(db, "Seva")
    _, hidden = gallery.add_images(db, store, folder["id"], _files("a.png", "b.png"))
    gallery.set_image_enabled(db, hidden["id"], False)
    assert gallery.list_gallery_folders(db)[0]["itemCount"] == 1
    assert gallery.list_gallery_folders(db, include_disabled=True)[0]["itemCount"] == 2


def test_root_and_cover_routes(client, auth):
    for path in ("/gallery/upload", "/gallery/home/upload"):
        resp = client.post(path, files=[("files", ("h.png", b"h", "image/png"))], headers=auth("admin"))
        assert resp.status_code == 201
    assert client.post("/gallery/upload", files=[("files", ("h.png", b"h", "image/png"))],
                       headers=auth("user")).status_code == 403
    assert len(client.get("/gallery/images").json()) == 2
    assert len(client.get("/gallery/home/images").json()) == 2

    folder = client.post("/gallery/folders", json={"name": "Seva"}, headers=auth("admin")).json()
    images = client.post(f"/gallery/folders/{folder['id']}/images",
                         files=[("files", ("a.png", b"a", "image/png")), ("files", ("b.png", b"b", "image/png"))],
                         headers=auth("admin")).json()
    resp = client.post(f"/gallery/folders/{folder['id']}/cover", json={"imageId": images[1]["id"]}, headers=auth("admin"))
    assert resp.json()["coverUrl"] == images[1]["url"]
