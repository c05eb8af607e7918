"""
Log Repository - indexes telemetry logs in a folder and converts them.

Keeps the API independent of where logs live and where converted UTM
files go.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional

from utmconv.exceptions import ConversionError, DestinationUnwritable
from utmconv.models.track import Track, TrackSummary
from utmconv.services.converter import ConversionResult, UTMConverter, read_track
from utmconv.services.session import ChannelAllocator, get_allocator


logger = logging.getLogger(__name__)

LOG_PATTERNS = ("*.tlog", "*.bin")
OUTPUT_FOLDER_ENV = "UTM_OUTPUT_FOLDER"
DEFAULT_OUTPUT_SUBFOLDER = "utm"


class LogRepository:
    """
    Repository for telemetry logs.

    Reads logs from a folder, caches their interpreted tracks in memory
    and writes converted files to an output folder.
    """

    def __init__(
        self,
        data_folder: Optional[Path] = None,
        output_folder: Optional[Path] = None,
        allocator: Optional[ChannelAllocator] = None,
    ):
        """
        Initialize the repository.

        Args:
            data_folder: Folder containing telemetry logs. If None, must be set later.
            output_folder: Where converted files go. Defaults to UTM_OUTPUT_FOLDER,
                then to a "utm" folder inside the data folder.
            allocator: Decoder channel pool (the process-wide one by default)
        """
        self._data_folder: Optional[Path] = None
        self._output_folder: Optional[Path] = output_folder
        self._allocator = allocator if allocator is not None else get_allocator()
        self._tracks: dict[str, tuple[Track, bool]] = {}
        self._index: dict[str, Path] = {}  # id -> filepath mapping

        if data_folder is not None:
            self.set_data_folder(data_folder)

    @property
    def data_folder(self) -> Optional[Path]:
        return self._data_folder

    @property
    def log_count(self) -> int:
        return len(self._index)

    @property
    def output_folder(self) -> Optional[Path]:
        if self._output_folder is not None:
            return self._output_folder
        env_folder = os.getenv(OUTPUT_FOLDER_ENV)
        if env_folder:
            return Path(env_folder)
        if self._data_folder is None:
            return None
        return self._data_folder / DEFAULT_OUTPUT_SUBFOLDER

    def set_data_folder(self, folder: Path) -> int:
        """
        Set the data folder and scan it for logs.

        Returns:
            Number of logs found
        """
        self._data_folder = folder
        self._tracks.clear()
        self._index.clear()
        return self.scan_folder(folder)

    def scan_folder(self, folder: Path) -> int:
        """
        Scan a folder for telemetry logs and build the index.

        Returns:
            Number of logs found
        """
        if not folder.exists():
            logger.warning(f"Data folder does not exist: {folder}")
            return 0

        count = 0
        for pattern in LOG_PATTERNS:
            for log_file in folder.glob(pattern):
                if log_file.is_file():
                    log_id = self._filepath_to_id(log_file)
                    self._index[log_id] = log_file
                    count += 1
                    logger.debug(f"Indexed log: {log_id} -> {log_file.name}")

        logger.info(f"Scanned {count} telemetry logs in {folder}")
        return count

    def rescan(self) -> int:
        if self._data_folder is None:
            raise ValueError("No data folder set")
        self.clear_cache()
        self._index.clear()
        return self.scan_folder(self._data_folder)

    def get_path(self, log_id: str) -> Optional[Path]:
        return self._index.get(log_id)

    def list_logs(self) -> list[TrackSummary]:
        """
        Summaries of all indexed logs, newest flight first.

        Logs that fail to load are skipped.
        """
        summaries = []
        for log_id in list(self._index):
            summary = self.get_summary(log_id)
            if summary is not None:
                summaries.append(summary)

        summaries.sort(key=lambda s: (s.started_at or "", s.name), reverse=True)
        return summaries

    def get_track(self, log_id: str) -> Optional[Track]:
        loaded = self._load(log_id)
        return loaded[0] if loaded is not None else None

    def get_summary(self, log_id: str) -> Optional[TrackSummary]:
        loaded = self._load(log_id)
        if loaded is None:
            return None
        track, fused = loaded
        return TrackSummary.from_track(track, log_id, self._index[log_id], fused)

    def convert(self, log_id: str) -> Optional[ConversionResult]:
        """
        Convert a log into <output folder>/<log name>.json.

        Returns None for unknown ids; conversion failures raise ConversionError.
        """
        filepath = self._index.get(log_id)
        if filepath is None:
            return None

        output_folder = self.output_folder
        try:
            output_folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationUnwritable(
                f"Unable to create output folder: '{output_folder}', error: {e}"
            ) from e
        dst = output_folder / f"{filepath.stem}.json"

        with UTMConverter(self._allocator) as converter:
            result = converter.convert_file(filepath, dst)

        self._tracks[log_id] = (result.track, result.fused_position)
        return result

    def clear_cache(self) -> None:
        """Clear the in-memory cache."""
        self._tracks.clear()
        logger.info("Track cache cleared")

    def _load(self, log_id: str) -> Optional[tuple[Track, bool]]:
        if log_id in self._tracks:
            return self._tracks[log_id]

        filepath = self._index.get(log_id)
        if filepath is None:
            return None

        try:
            loaded = read_track(filepath, self._allocator)
        except ConversionError as e:
            logger.error(f"Failed to load log {filepath}: {e}")
            return None

        self._tracks[log_id] = loaded
        logger.debug(f"Loaded and cached log: {log_id}")
        return loaded

    def _filepath_to_id(self, filepath: Path) -> str:
        """Generate a consistent ID from filepath."""
        stat = filepath.stat()
        id_string = f"{filepath.name}_{stat.st_size}_{stat.st_mtime}"
        return hashlib.sha256(id_string.encode()).hexdigest()[:16]


# Global repository instance (set up by app initialization)
_repository: Optional[LogRepository] = None


def get_repository() -> LogRepository:
    """Get the global repository instance."""
    global _repository
    if _repository is None:
        _repository = LogRepository()
    return _repository


def init_repository(data_folder: Path, output_folder: Optional[Path] = None) -> LogRepository:
    """Initialize the global repository with a data folder."""
    global _repository
    _repository = LogRepository(data_folder, output_folder)
    return _repository
