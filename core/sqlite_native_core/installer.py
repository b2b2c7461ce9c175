"""
installer.py — download and unpack SQLite DLL archives

Output layout:
  <output_root>/<version>/win-<arch>/
  ├── sqlite3.dll
  └── sqlite3.def

An existing win-<arch> directory for the version is removed before the
new archive is unpacked, so a re-run never mixes old and new files.
"""

import logging
import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field

from .download_client import downloaded_archive
from .errors import ArchiveError, FetchError

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    arch: str
    url: str
    target_dir: str
    files: list = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self):
        return self.error is None


def arch_dir_name(arch):
    return f"win-{arch}"


def version_dir(output_root, version):
    return os.path.join(os.path.abspath(output_root), version)


def extract_archive(archive_path, target_dir):
    """Extract every member of a zip archive into target_dir.

    Returns:
        Sorted list of extracted file names, relative to target_dir.

    Raises:
        ArchiveError: Not a zip file, a member would land outside
                      target_dir, or a member cannot be decompressed.
    """
    target_root = os.path.realpath(target_dir)
    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            members = zf.infolist()
            for info in members:
                dest = os.path.realpath(os.path.join(target_root, info.filename))
                if os.path.commonpath([target_root, dest]) != target_root:
                    raise ArchiveError(
                        f"Archive member escapes target directory: {info.filename}")
            zf.extractall(target_root)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid zip archive: {e}") from e
    except (zlib.error, EOFError) as e:
        raise ArchiveError(f"Corrupt archive data: {e}") from e
    except (RuntimeError, NotImplementedError) as e:
        # encrypted members or an unsupported compression method
        raise ArchiveError(f"Unsupported archive: {e}") from e

    return sorted(
        info.filename.rstrip("/") for info in members if not info.is_dir())


def prepare_target_dir(target_dir):
    """Remove target_dir if present and create it empty."""
    if os.path.exists(target_dir):
        logger.info("Removing existing %s", target_dir)
        shutil.rmtree(target_dir)
    os.makedirs(target_dir)


def install_architecture(arch, url, version_path, timeout=60,
                         ssl_noverify=False):
    """Install one architecture's archive under version_path.

    Raises:
        ArchiveError: Download, extraction or filesystem failure. The
                      target directory is removed before raising.
    """
    target_dir = os.path.join(version_path, arch_dir_name(arch))
    try:
        prepare_target_dir(target_dir)
        with downloaded_archive(url, timeout=timeout,
                                ssl_noverify=ssl_noverify) as archive_path:
            files = extract_archive(archive_path, target_dir)
        if not files:
            raise ArchiveError(f"Archive for {arch} contained no files")
    except (ArchiveError, FetchError, OSError) as e:
        shutil.rmtree(target_dir, ignore_errors=True)
        if isinstance(e, ArchiveError):
            raise
        raise ArchiveError(f"{arch}: {e}") from e

    logger.info("Installed %s: %d file(s) in %s", arch, len(files), target_dir)
    return files


def install_all(info, output_root=".", timeout=60, ssl_noverify=False):
    """Download and install every architecture in a DownloadInfo.

    A failing architecture is logged and recorded; the others still run.

    Returns:
        List of InstallResult, one per architecture in info.links.
    """
    version_path = version_dir(output_root, info.version)
    os.makedirs(version_path, exist_ok=True)

    results = []
    for arch in info.architectures:
        url = info.links[arch]
        target_dir = os.path.join(version_path, arch_dir_name(arch))
        result = InstallResult(arch=arch, url=url, target_dir=target_dir)
        try:
            result.files = install_architecture(
                arch, url, version_path,
                timeout=timeout, ssl_noverify=ssl_noverify)
        except ArchiveError as e:
            logger.warning("Failed to install %s from %s: %s", arch, url, e)
            result.error = str(e)
        results.append(result)
    return results
