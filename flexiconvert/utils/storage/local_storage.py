"""Local filesystem storage for uploads and converted outputs."""
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from flexiconvert.utils.storage import StorageProvider

UPLOADS = "uploads"
OUTPUTS = "outputs"


@dataclass(frozen=True)
class StoredFile:
    area: str
    name: str
    path: Path
    size: int
    modified_at: datetime  # naive UTC, comparable with record timestamps


class LocalStorage(StorageProvider):
    """
    Flat two-directory layout under ``base_path``::

        uploads/<uuid>.<ext>   inputs saved at intake
        outputs/<uuid>.<ext>   artifacts written by the executor

    Names are generated here so concurrent jobs never collide.
    """

    def __init__(self, base_path='/data'):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for all file storage
        """
        self.base_path = Path(base_path)
        self.uploads_path = self.base_path / UPLOADS
        self.outputs_path = self.base_path / OUTPUTS

        # Create directories if they don't exist
        self.uploads_path.mkdir(parents=True, exist_ok=True)
        self.outputs_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _unique_name(extension):
        extension = extension.lstrip('.').lower()
        return f"{uuid.uuid4()}.{extension}" if extension else str(uuid.uuid4())

    def _area_path(self, area):
        if area == UPLOADS:
            return self.uploads_path
        if area == OUTPUTS:
            return self.outputs_path
        raise ValueError(f"Unknown storage area: {area}")

    def _resolve(self, area, filename):
        # Stored names are generated by us; refuse anything that could escape the area
        if not filename or Path(filename).name != filename:
            raise ValueError(f"Invalid stored filename: {filename!r}")
        return self._area_path(area) / filename

    def save_upload(self, file_obj, extension):
        """
        Save an uploaded file under a fresh unique name.

        Args:
            file_obj: Werkzeug FileStorage, file-like object or path to a file
            extension: Extension for the stored name (e.g. ``csv``)

        Returns:
            str: The stored filename (relative to the uploads directory)
        """
        filename = self._unique_name(extension)
        file_path = self.uploads_path / filename

        # Handle different file object types
        if isinstance(file_obj, (str, Path)):
            shutil.copy2(file_obj, file_path)
        elif hasattr(file_obj, 'save'):
            # It's a Flask/Werkzeug FileStorage object
            file_obj.save(str(file_path))
        elif hasattr(file_obj, 'read'):
            with open(file_path, 'wb') as f:
                shutil.copyfileobj(file_obj, f)
        else:
            raise ValueError(f"Unsupported file object type: {type(file_obj)}")

        return filename

    def upload_path(self, stored_filename):
        return self._resolve(UPLOADS, stored_filename)

    def new_output_filename(self, extension):
        return self._unique_name(extension)

    def output_path(self, processed_filename):
        return self._resolve(OUTPUTS, processed_filename)

    def delete_file(self, area, filename):
        """
        Delete a stored file.

        Returns:
            int: Bytes freed; 0 when the file was already gone
        """
        path = self._resolve(area, filename)
        try:
            size = path.stat().st_size
            path.unlink()
        except FileNotFoundError:
            return 0
        return size

    def list_files(self, area):
        """Yield every regular file in an area; files vanishing mid-scan are skipped."""
        for path in sorted(self._area_path(area).iterdir()):
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            if not path.is_file():
                continue
            modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).replace(tzinfo=None)
            yield StoredFile(area=area, name=path.name, path=path, size=stat.st_size, modified_at=modified)

    def get_file_size(self, file_path):
        """
        Get size of a file in bytes.

        Returns:
            int: File size in bytes, or None if file doesn't exist
        """
        path = Path(file_path)
        if path.exists():
            return path.stat().st_size
        return None
