"""
Setu - Gallery
Photo folders with covers, plus the root (home page) images that sit outside
any folder.
"""
from setu import library
from setu.config import GALLERY_FOLDER
from setu.uploads import IMAGE

GALLERY = library.Shelf("gallery_folders", "gallery_images", GALLERY_FOLDER, IMAGE,
                        "Gallery folder", "Image", covers=True)


def list_gallery_folders(db, include_disabled: bool = False) -> list:
    return library.list_folders(db, GALLERY, include_disabled)


def create_gallery_folder(db, name: str, enabled: bool = True) -> dict:
    return library.create_folder(db, GALLERY, name, enabled)


def rename_gallery_folder(db, folder_id: int, name: str) -> dict:
    return library.rename_folder(db, GALLERY, folder_id, name)


def set_gallery_folder_enabled(db, folder_id: int, enabled: bool) -> dict:
    return library.set_folder_enabled(db, GALLERY, folder_id, enabled)


def delete_gallery_folder(db, store, folder_id: int) -> dict:
    return library.delete_folder(db, store, GALLERY, folder_id)


def reorder_gallery_folders(db, folder_id: int, direction: str = None, new_index: int = None) -> list:
    return library.reorder_folders(db, GALLERY, folder_id, direction, new_index)


def set_cover(db, folder_id: int, image_id: int) -> dict:
    return library.set_cover(db, GALLERY, folder_id, image_id)


def list_images(db, folder_id: int, include_disabled: bool = False) -> list:
    return library.list_items(db, GALLERY, folder_id, include_disabled)


def list_root_images(db, include_disabled: bool = False) -> list:
    return library.list_items(db, GALLERY, None, include_disabled)


def add_images(db, store, folder_id: int, files: list) -> list:
    """The first image of a folder without a cover becomes its cover."""
    return library.add_items(db, store, GALLERY, folder_id, files)


def add_root_images(db, store, files: list) -> list:
    return library.add_items(db, store, GALLERY, None, files)


def set_image_enabled(db, image_id: int, enabled: bool) -> dict:
    return library.set_item_enabled(db, GALLERY, image_id, enabled)


def rename_image(db, image_id: int, name: str) -> dict:
    return library.rename_item(db, GALLERY, image_id, name)


def delete_image(db, store, image_id: int) -> dict:
    return library.delete_item(db, store, GALLERY, image_id)


def reorder_images(db, image_id: int, direction: str = None, new_index: int = None) -> list:
    return library.reorder_items(db, GALLERY, image_id, direction, new_index)
