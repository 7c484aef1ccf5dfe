"""
Setu - E-books
PDF shelf: ordered folders of PDFs and a root shelf of loose PDFs.
"""
from setu import library
from setu.config import EBOOK_FOLDER
from setu.uploads import DOCUMENT

EBOOKS = library.Shelf("ebook_folders", "ebook_files", EBOOK_FOLDER, DOCUMENT, "E-book folder", "E-book")


def list_folders(db, include_disabled: bool = False) -> list:
    return library.list_folders(db, EBOOKS, include_disabled)


def create_folder(db, name: str, enabled: bool = True) -> dict:
    return library.create_folder(db, EBOOKS, name, enabled)


def rename_folder(db, folder_id: int, name: str) -> dict:
    return library.rename_folder(db, EBOOKS, folder_id, name)


def set_folder_enabled(db, folder_id: int, enabled: bool) -> dict:
    return library.set_folder_enabled(db, EBOOKS, folder_id, enabled)


def delete_folder(db, store, folder_id: int) -> dict:
    return library.delete_folder(db, store, EBOOKS, folder_id)


def reorder_folders(db, folder_id: int, direction: str = None, new_index: int = None) -> list:
    return library.reorder_folders(db, EBOOKS, folder_id, direction, new_index)


def list_files(db, folder_id: int = None, include_disabled: bool = False) -> list:
    """Files of one folder; folder_id None lists the root shelf."""
    return library.list_items(db, EBOOKS, folder_id, include_disabled)


def add_files(db, store, folder_id: int, files: list) -> list:
    return library.add_items(db, store, EBOOKS, folder_id, files)


def set_file_enabled(db, file_id: int, enabled: bool) -> dict:
    return library.set_item_enabled(db, EBOOKS, file_id, enabled)


def rename_file(db, file_id: int, name: str) -> dict:
    return library.rename_item(db, EBOOKS, file_id, name)


def delete_file(db, store, file_id: int) -> dict:
    return library.delete_item(db, store, EBOOKS, file_id)


def reorder_files(db, file_id: int, direction: str = None, new_index: int = None) -> list:
    return library.reorder_items(db, EBOOKS, file_id, direction, new_index)
