from abc import ABC, abstractmethod
from typing import Iterator, Optional


class StorageProvider(ABC):
    @abstractmethod
    def save_upload(self, file_obj, extension: str) -> str:
        """Store an uploaded file under a fresh unique name and return that name"""
        pass

    @abstractmethod
    def upload_path(self, stored_filename: str):
        """Absolute path of an uploaded file"""
        pass

    @abstractmethod
    def new_output_filename(self, extension: str) -> str:
        """Reserve a unique output filename; nothing is written yet"""
        pass

    @abstractmethod
    def output_path(self, processed_filename: str):
        """Absolute path of a converted file"""
        pass

    @abstractmethod
    def delete_file(self, area: str, filename: str) -> int:
        """Delete a file, returning bytes freed (0 if it was already gone)"""
        pass

    @abstractmethod
    def get_file_size(self, file_path) -> Optional[int]:
        """Size in bytes, or None if the file does not exist"""
        pass

    @abstractmethod
    def list_files(self, area: str) -> Iterator:
        """List files stored in ``uploads`` or ``outputs``"""
        pass


from .local_storage import OUTPUTS, UPLOADS, LocalStorage, StoredFile  # noqa: E402

_instances = {}


def get_storage(base_path: Optional[str] = None) -> LocalStorage:
    """Shared LocalStorage per base path (defaults to ``STORAGE_PATH``)."""
    if base_path is None:
        from flexiconvert.config import Config

        base_path = Config.STORAGE_PATH
    base_path = str(base_path)
    if base_path not in _instances:
        _instances[base_path] = LocalStorage(base_path=base_path)
    return _instances[base_path]


__all__ = ["StorageProvider", "LocalStorage", "StoredFile", "UPLOADS", "OUTPUTS", "get_storage"]
