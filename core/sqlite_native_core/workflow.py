"""
workflow.py — one update run, start to finish

    fetch page -> extract links -> install per architecture
               -> update nuspec -> summarize

Page and link failures abort the run. Architecture and manifest failures
are logged and the run continues.
"""

import logging
from dataclasses import dataclass, field

from .download_client import fetch_page
from .download_page import DownloadInfo, extract_download_info
from .errors import ManifestError
from .installer import install_all, version_dir
from .nuspec import DEFAULT_NUSPEC, update_nuspec
from .report import collect_summary

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    info: DownloadInfo
    output_dir: str
    installs: list = field(default_factory=list)
    manifest_changes: list | None = None
    summary: list = field(default_factory=list)

    @property
    def failed(self):
        """Architectures that had a link but did not install."""
        return [r.arch for r in self.installs if not r.ok]


def update_sqlite(output_root=".", manifest_path=DEFAULT_NUSPEC,
                  page_url=None, timeout=60, ssl_noverify=False,
                  dry_run=False):
    """Fetch the latest SQLite DLLs and refresh the package manifest.

    Args:
        output_root: Directory that receives <version>/win-<arch>/.
        manifest_path: nuspec file to rewrite.
        page_url: Download page override (see download_client).
        timeout: HTTP timeout in seconds for every request.
        ssl_noverify: Skip SSL certificate verification.
        dry_run: Stop after link extraction; nothing is written.

    Returns:
        RunResult.

    Raises:
        FetchError: The download page could not be fetched.
        ExtractionError: No links or no consistent version on the page.
    """
    html = fetch_page(page_url, timeout=timeout, ssl_noverify=ssl_noverify)
    info = extract_download_info(html)
    result = RunResult(info=info, output_dir=version_dir(output_root, info.version))

    if dry_run:
        logger.info("Dry run: skipping downloads and manifest update")
        return result

    result.installs = install_all(info, output_root, timeout=timeout,
                                  ssl_noverify=ssl_noverify)

    try:
        result.manifest_changes = update_nuspec(info.version, manifest_path)
    except ManifestError as e:
        logger.warning("Manifest not updated: %s", e)

    result.summary = collect_summary(result.output_dir, info)
    return result
