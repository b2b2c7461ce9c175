"""sqlite_native_core — updater for the SQLite.Native package."""

__version__ = "0.2.0"

from .errors import (
    SqliteNativeError, FetchError, FetchSSLError,
    ExtractionError, NoLinksFoundError, VersionUndeterminedError,
    VersionMismatchError, ArchiveError, ManifestError,
)
from .download_client import fetch_page, downloaded_archive, DEFAULT_PAGE_URL
from .download_page import (
    ARCHITECTURES, DownloadInfo, LinkRule, LINK_RULES,
    extract_download_info, version_from_digits,
)
from .installer import InstallResult, install_all, install_architecture
from .nuspec import (
    DEFAULT_NUSPEC, FileEntry, NuspecDocument,
    read_file_entries, update_nuspec,
)
from .report import ArchitectureSummary, collect_summary, format_summary
from .workflow import RunResult, update_sqlite
