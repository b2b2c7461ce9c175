"""
report.py — summary of an update run

Reads back the win-<arch> directories of the installed version and lists
their files with sizes, for the console summary printed by the CLI. Only
architectures that have a link in the DownloadInfo are reported, and a
directory that is missing (a failed architecture) is skipped silently.
Nothing here writes to disk.
"""

import os
from dataclasses import dataclass

from .installer import arch_dir_name


@dataclass
class ArchitectureSummary:
    arch: str
    directory: str
    files: list

    @property
    def count(self):
        return len(self.files)


def collect_summary(version_path, info):
    """List the installed files per architecture.

    Architectures whose directory is missing are left out.
    """
    summaries = []
    for arch in info.architectures:
        directory = os.path.join(version_path, arch_dir_name(arch))
        if not os.path.isdir(directory):
            continue
        files = []
        for dirpath, _dirnames, filenames in os.walk(directory):
            for name in filenames:
                rel = os.path.relpath(os.path.join(dirpath, name), directory)
                files.append(rel.replace(os.sep, "/"))
        summaries.append(ArchitectureSummary(arch, directory, sorted(files)))
    return summaries


def format_summary(version, summaries):
    lines = [f"SQLite {version}: {len(summaries)} architecture(s) installed"]
    for summary in summaries:
        lines.append(f"  {arch_dir_name(summary.arch)}: {summary.count} file(s)")
        for name in summary.files:
            size = os.path.getsize(os.path.join(summary.directory, name))
            lines.append(f"    {name:30s} {size:>10,} bytes")
    return "\n".join(lines)
