import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import chardet

from ..errors import CaptureError
from ..monitor.orchestrator import SnapshotSource
from ..snapshot.models import PresentationSnapshot
from ..snapshot.serialization import snapshot_from_dict

logger = logging.getLogger(__name__)


class JsonSnapshotAdapter:
    """JSON adapter for reading captured presentation snapshots.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, UTF-16, Windows-1252, ...)
    - The camelCase wire format emitted by the capture script
    """

    def can_handle(self, file_path: Union[str, Path]) -> bool:
        """Check if this adapter can handle the given file."""
        return Path(file_path).suffix.lower() == ".json"

    def _detect_encoding(self, raw_data: bytes) -> str:
        """Detect encoding using BOMs first, then chardet."""
        if raw_data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'
        if raw_data.startswith((b'\xff\xfe', b'\xfe\xff')):
            return 'utf-16'

        result = chardet.detect(raw_data[:10000])  # First 10KB is enough
        encoding = result.get('encoding') or 'utf-8'

        encoding_lower = encoding.lower()
        if 'utf-8' in encoding_lower or 'utf8' in encoding_lower or encoding_lower == 'ascii':
            return 'utf-8'
        return encoding

    def _decode(self, raw_data: bytes) -> str:
        encoding = self._detect_encoding(raw_data)
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['cp1252', 'latin-1']:
                try:
                    logger.debug(f"Decoding with {encoding} failed, retrying as {fallback_encoding}")
                    return raw_data.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            raise ValueError(f"Could not decode snapshot file with encoding {encoding}")

    def read_dict(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Read the file and return the raw JSON object.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file is empty or not a JSON object
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        raw_data = path.read_bytes()
        if not raw_data.strip():
            raise ValueError(f"Snapshot file is empty: {file_path}")

        try:
            data = json.loads(self._decode(raw_data))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Snapshot file must contain a JSON object: {file_path}")
        return data

    def read(self, file_path: Union[str, Path]) -> PresentationSnapshot:
        """Read a snapshot file into a PresentationSnapshot.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the content cannot be parsed (SnapshotValidationError
                        for structurally invalid snapshots)
        """
        snapshot = snapshot_from_dict(self.read_dict(file_path))
        logger.debug(
            f"Read snapshot {snapshot.presentation_id} from {file_path}: "
            f"{len(snapshot.slides)} slides"
        )
        return snapshot


class DirectorySnapshotSource(SnapshotSource):
    """Capture source reading ``<directory>/<presentation_id>.json``.

    Lets a poller diff whatever the export job last wrote to disk.
    """

    def __init__(self, directory: Union[str, Path], adapter: JsonSnapshotAdapter = None):
        self.directory = Path(directory)
        self.adapter = adapter or JsonSnapshotAdapter()

    def path_for(self, presentation_id: str) -> Path:
        return self.directory / f"{presentation_id}.json"

    def capture(self, presentation_id: str) -> PresentationSnapshot:
        path = self.path_for(presentation_id)
        try:
            return self.adapter.read(path)
        except (OSError, ValueError) as e:
            raise CaptureError(f"Could not capture {presentation_id} from {path}: {e}") from e
