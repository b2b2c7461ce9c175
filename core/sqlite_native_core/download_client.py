"""
download_client.py — HTTP access to sqlite.org (stdlib urllib)

Fetches the SQLite download page as text and downloads release archives
to temporary files that are removed on every exit path.

Certificate handling is driven by the environment:
  - SQLITE_NATIVE_SSL_CERT: CA bundle (PEM) for SSL inspection proxies
  - SQLITE_NATIVE_SSL_VERIFY=0: no verification (troubleshooting only)
On Windows the system certificate store is trusted as well, since
Python's bundled CAs do not include certificates installed there.
"""

import contextlib
import http.client
import logging
import os
import ssl
import sys
import tempfile
import urllib.error
import urllib.request

from .errors import FetchError, FetchSSLError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_URL = "https://www.sqlite.org/download.html"

USER_AGENT = "sqlite-native-updater"

CHUNK_SIZE = 8192

# Everything urlopen and a streaming read can raise for a failed transfer
TRANSFER_ERRORS = (urllib.error.URLError, http.client.HTTPException, OSError)


def _windows_store_pems():
    """Yield PEM certificates from the Windows ROOT and CA stores."""
    for store_name in ("ROOT", "CA"):
        try:
            certs = ssl.enum_certificates(store_name)
        except OSError:
            continue
        for cert, encoding, _trust in certs:
            if encoding == "x509_asn":
                yield ssl.DER_cert_to_PEM_cert(cert)


def _ssl_context(ssl_noverify=False):
    """Build the SSL context for a request.

    Returns:
        ssl.SSLContext, or None to let urllib use its defaults.
    """
    env_noverify = os.environ.get("SQLITE_NATIVE_SSL_VERIFY", "1").strip() == "0"
    if ssl_noverify or env_noverify:
        if env_noverify:
            logger.warning("SSL certificate verification disabled "
                           "(SQLITE_NATIVE_SSL_VERIFY=0)")
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    ca_bundle = os.environ.get("SQLITE_NATIVE_SSL_CERT", "").strip()
    if ca_bundle:
        if not os.path.isfile(ca_bundle):
            logger.warning("SQLITE_NATIVE_SSL_CERT file not found: %s", ca_bundle)
            return None
        logger.info("Using custom CA bundle: %s", ca_bundle)
        return ssl.create_default_context(cafile=ca_bundle)

    if sys.platform != "win32":
        return None

    ctx = ssl.create_default_context()
    loaded = 0
    for pem in _windows_store_pems():
        try:
            ctx.load_verify_locations(cadata=pem)
            loaded += 1
        except ssl.SSLError:
            logger.debug("Skipping unloadable certificate from Windows store")
    logger.debug("Loaded %d certificate(s) from Windows system store", loaded)
    return ctx


def _wrap_error(exc, what):
    """Map a transfer exception to FetchSSLError or FetchError."""
    reason = getattr(exc, "reason", exc)
    if isinstance(exc, ssl.SSLError) or isinstance(reason, ssl.SSLError):
        return FetchSSLError(f"SSL certificate verification failed: {exc}")
    detail = str(exc)
    if isinstance(exc, http.client.HTTPException):
        detail = f"{type(exc).__name__}: {exc}"
    return FetchError(f"{what}: {detail}")


def resolve_page_url(page_url=None):
    """Return the download page URL: argument, env var, or the default."""
    return (page_url
            or os.environ.get("SQLITE_DOWNLOAD_PAGE_URL")
            or DEFAULT_PAGE_URL)


def fetch_page(page_url=None, timeout=30, ssl_noverify=False):
    """Fetch the SQLite download page and return it as text.

    Args:
        page_url: Page URL. Defaults to SQLITE_DOWNLOAD_PAGE_URL env var
                  or the sqlite.org download page.
        timeout: HTTP request timeout in seconds.
        ssl_noverify: If True, skip SSL certificate verification.

    Returns:
        The response body as str.

    Raises:
        FetchSSLError: On SSL certificate verification failure.
        FetchError: On any other network failure or timeout.
    """
    url = resolve_page_url(page_url)
    logger.info("Fetching download page from %s", url)

    req = urllib.request.Request(url, headers={
        "User-Agent": USER_AGENT,
        "Accept": "text/html",
    })
    ssl_ctx = _ssl_context(ssl_noverify)
    try:
        with urllib.request.urlopen(req, timeout=timeout,
                                    context=ssl_ctx) as resp:
            charset = resp.headers.get_content_charset() or "utf-8"
            data = resp.read()
    except TRANSFER_ERRORS as e:
        raise _wrap_error(e, "Failed to fetch download page") from e

    text = data.decode(charset, errors="replace")
    logger.info("Download page fetched: %d characters", len(text))
    return text


@contextlib.contextmanager
def downloaded_archive(download_url, timeout=60, ssl_noverify=False):
    """Download an archive to a temporary file for the duration of a block.

    Usage:
        with downloaded_archive(url) as path:
            ...  # path exists here

    The temporary file is deleted when the block exits, whether it
    completes, raises, or the download itself fails.

    Raises:
        FetchSSLError: On SSL certificate verification failure.
        FetchError: On any other network failure.
    """
    filename = download_url.rsplit("/", 1)[-1]
    tmp_fd, tmp_path = tempfile.mkstemp(prefix="sqlite-", suffix=".zip.tmp")
    logger.info("Downloading %s", download_url)
    try:
        req = urllib.request.Request(download_url, headers={
            "User-Agent": USER_AGENT,
        })
        ssl_ctx = _ssl_context(ssl_noverify)
        downloaded = 0
        try:
            with os.fdopen(tmp_fd, "wb") as out:
                tmp_fd = None
                with urllib.request.urlopen(req, timeout=timeout,
                                            context=ssl_ctx) as resp:
                    while True:
                        chunk = resp.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
                        downloaded += len(chunk)
        except TRANSFER_ERRORS as e:
            raise _wrap_error(e, f"Download of {filename} failed") from e

        logger.info("Downloaded: %s (%d bytes)", filename, downloaded)
        yield tmp_path
    finally:
        if tmp_fd is not None:
            os.close(tmp_fd)
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
