#!/usr/bin/env python3
"""
update_sqlite.py — Refresh the SQLite.Native package from sqlite.org

Scrapes the SQLite download page, downloads the Windows DLL archives
(x86, x64, arm64), unpacks them into <output_root>/<version>/win-<arch>/
and rewrites SQLite.Native.nuspec for the new version.

Logic lives in sqlite_native_core.workflow.

Usage:
  python scripts/update_sqlite.py                 # output into the cwd
  python scripts/update_sqlite.py build/          # output into build/
  python scripts/update_sqlite.py --dry-run       # show what would be fetched
  # exit code 0: success (some architectures may be skipped), 1: fatal error
"""

import argparse
import logging
import sys

from sqlite_native_core import (
    DEFAULT_NUSPEC,
    FetchSSLError,
    SqliteNativeError,
    format_summary,
    update_sqlite,
)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Download the latest SQLite DLLs and update the nuspec")
    parser.add_argument("output_root", nargs="?", default=".",
                        help="Output root directory (default: current directory)")
    parser.add_argument("--manifest", default=DEFAULT_NUSPEC,
                        help=f"nuspec file to update (default: {DEFAULT_NUSPEC})")
    parser.add_argument("--page-url", default=None,
                        help="Download page URL override")
    parser.add_argument("--timeout", type=int, default=60,
                        help="HTTP timeout in seconds (default: 60)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Only report the links found; write nothing")
    parser.add_argument("--ssl-noverify", action="store_true",
                        help="Skip SSL certificate verification")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s")

    print("=" * 60)
    print("SQLite Native Package Updater")
    print("=" * 60)
    print(f"Output root: {args.output_root}")
    print(f"Manifest:    {args.manifest}")
    print()

    try:
        result = update_sqlite(
            output_root=args.output_root,
            manifest_path=args.manifest,
            page_url=args.page_url,
            timeout=args.timeout,
            ssl_noverify=args.ssl_noverify,
            dry_run=args.dry_run,
        )
    except FetchSSLError as e:
        print(f"\nFATAL: {e}", file=sys.stderr)
        print("Retry with --ssl-noverify or set SQLITE_NATIVE_SSL_CERT.",
              file=sys.stderr)
        return 1
    except SqliteNativeError as e:
        print(f"\nFATAL: {e}", file=sys.stderr)
        return 1

    info = result.info
    print()
    print(f"Version: {info.version}")
    for arch in info.architectures:
        print(f"  {arch:6s} {info.links[arch]}")
    for arch, reason in info.skipped.items():
        print(f"  {arch:6s} SKIPPED: {reason}")

    if args.dry_run:
        print()
        print("=== DRY RUN (no files were written) ===")
        print(f"Would install into: {result.output_dir}")
        return 0

    print()
    print("=" * 60)
    print(format_summary(info.version, result.summary))
    for install in result.installs:
        if not install.ok:
            print(f"  FAIL {install.arch}: {install.error}", file=sys.stderr)
    if result.manifest_changes is None:
        print(f"Manifest: not updated ({args.manifest})")
    else:
        print(f"Manifest: {len(result.manifest_changes)} change(s)")
        for change in result.manifest_changes:
            print(f"  {change}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
