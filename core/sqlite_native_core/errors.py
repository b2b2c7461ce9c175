"""
errors.py — exception taxonomy for the SQLite native package updater

Fatal errors (the run cannot continue):
  - FetchError: the download page could not be retrieved
  - NoLinksFoundError / VersionUndeterminedError: nothing usable on the page

Non-fatal errors (logged, the run continues):
  - ArchiveError: one architecture failed to download or extract
  - ManifestError: the .nuspec file could not be parsed
"""


class SqliteNativeError(Exception):
    """Base exception for updater operations."""


class FetchError(SqliteNativeError):
    """Raised when an HTTP request fails or times out."""


class FetchSSLError(FetchError):
    """Raised when an SSL certificate verification error occurs.

    The CLI reports it separately so the user can retry with
    --ssl-noverify or point SQLITE_NATIVE_SSL_CERT at a CA bundle.
    """


class ExtractionError(SqliteNativeError):
    """Raised when the download page yields no usable release."""


class NoLinksFoundError(ExtractionError):
    """Raised when no architecture rule matched the download page."""


class VersionUndeterminedError(ExtractionError):
    """Raised when no release version could be derived from the links."""


class VersionMismatchError(VersionUndeterminedError):
    """Raised when architectures disagree on the release version."""


class ArchiveError(SqliteNativeError):
    """Raised when an architecture archive cannot be downloaded or extracted."""


class ManifestError(SqliteNativeError):
    """Raised when the .nuspec manifest is not well-formed XML."""
