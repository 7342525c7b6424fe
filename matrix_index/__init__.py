"""Matrix local index - offline search and smart collections over Matrix chat history."""

from importlib import metadata

__version__ = "0.1.0"
__license__ = "MIT"

try:
    __version__ = metadata.version("matrix-index")
except metadata.PackageNotFoundError:
    # Package is not installed
    pass

from .config import Settings, MatrixConfig, DatabaseConfig, LogConfig
from .errors import LocalIndexError, ValidationError, StorageUnavailable, TransactionFailure
from .logger import setup_logging, get_logger
from .records import MessageRecord, MediaRecord, SearchQuery, SmartCollection, RoomIndex
from .store import LocalIndexStore

__all__ = [
    "Settings",
    "MatrixConfig",
    "DatabaseConfig",
    "LogConfig",
    "LocalIndexError",
    "ValidationError",
    "StorageUnavailable",
    "TransactionFailure",
    "setup_logging",
    "get_logger",
    "MessageRecord",
    "MediaRecord",
    "SearchQuery",
    "SmartCollection",
    "RoomIndex",
    "LocalIndexStore",
]
