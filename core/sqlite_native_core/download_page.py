"""
download_page.py — extract release links from the sqlite.org download page

The download page does not publish an API. Archive links are written into
the page by an inline script, one call per product:

    d391('a12','2025/sqlite-dll-win-x64-3500400.zip');

The page is parsed with lxml.html. The text of <script> elements and the
href of <a> elements are collected in document order as candidate
references, and one named LinkRule per architecture picks out its archive.
Upstream markup drift therefore only affects this module.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping
from urllib.parse import urljoin

from lxml import etree
from lxml import html as lhtml

from .errors import NoLinksFoundError, VersionMismatchError, VersionUndeterminedError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.sqlite.org/"

ARCHITECTURES = ("x86", "x64", "arm64")

# Inline-script call: name('id','path/to/archive.zip')
_SCRIPT_CALL_RE = re.compile(r"""\w+\(\s*'[^']*'\s*,\s*'([^']+)'\s*\)""")


@dataclass(frozen=True)
class LinkRule:
    """Named extraction rule for one architecture's DLL archive."""
    arch: str
    pattern: re.Pattern

    def match(self, reference):
        """Return the version digits if *reference* is this rule's archive."""
        m = self.pattern.search(reference)
        return m.group("digits") if m else None


def _dll_rule(arch, platform_tags):
    alternatives = "|".join(re.escape(tag) for tag in platform_tags)
    return LinkRule(arch, re.compile(
        rf"(?:^|/)sqlite-dll-(?:{alternatives})-{arch}-(?P<digits>\d+)\.zip$"))


# Current names are sqlite-dll-win-<arch>-NNNNNNN.zip; releases before 3.44
# used win32-x86 / win64-x64 / win64-arm64.
LINK_RULES = (
    _dll_rule("x86", ("win", "win32")),
    _dll_rule("x64", ("win", "win64")),
    _dll_rule("arm64", ("win", "win64")),
)


@dataclass(frozen=True)
class DownloadInfo:
    """A SQLite release as found on the download page."""
    version: str
    links: Mapping[str, str]
    skipped: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "links", MappingProxyType(dict(self.links)))
        object.__setattr__(self, "skipped", MappingProxyType(dict(self.skipped)))

    @property
    def architectures(self):
        return [arch for arch in ARCHITECTURES if arch in self.links]


def collect_references(html):
    """Return every candidate archive path referenced by the page, in order."""
    if not html or not html.strip():
        return []
    try:
        doc = lhtml.fromstring(html.encode("utf-8"))
    except etree.ParserError as e:
        logger.warning("Download page could not be parsed: %s", e)
        return []

    references = []
    for el in doc.xpath("//script | //a[@href]"):
        if el.tag == "script":
            references.extend(_SCRIPT_CALL_RE.findall(el.text or ""))
        else:
            href = el.get("href").strip()
            if href:
                references.append(href)
    return references


def version_from_digits(digits):
    """Convert the numeric filename suffix to a dotted version.

    The suffix is positional: one digit major, two digits minor, two
    digits patch (a trailing two-digit build number is ignored).

    >>> version_from_digits("3500400")
    '3.50.4'
    >>> version_from_digits("3450100")
    '3.45.1'
    """
    if not digits or len(digits) < 5 or not digits.isdigit():
        return None
    major = int(digits[0])
    minor = int(digits[1:3])
    patch = int(digits[3:5])
    return f"{major}.{minor}.{patch}"


def match_rules(references, rules=LINK_RULES):
    """Apply each rule to the references; first match per rule wins.

    Returns:
        dict mapping arch to (reference, digits).
    """
    matches = {}
    for rule in rules:
        for reference in references:
            digits = rule.match(reference)
            if digits is not None:
                matches[rule.arch] = (reference, digits)
                break
    return matches


def extract_download_info(html, base_url=DEFAULT_BASE_URL, rules=LINK_RULES):
    """Build a DownloadInfo from the download page HTML.

    Architectures whose rule does not match are skipped with a warning.

    Raises:
        NoLinksFoundError: No rule matched.
        VersionUndeterminedError: No version could be derived.
        VersionMismatchError: Architectures encode different versions.
    """
    references = collect_references(html)
    matches = match_rules(references, rules)

    links = {}
    skipped = {}
    versions = {}
    for rule in rules:
        if rule.arch not in matches:
            reason = "no sqlite-dll archive link found for this architecture"
            logger.warning("Skipping %s: %s", rule.arch, reason)
            skipped[rule.arch] = reason
            continue
        reference, digits = matches[rule.arch]
        links[rule.arch] = urljoin(base_url, reference)
        versions[rule.arch] = version_from_digits(digits)

    if not links:
        raise NoLinksFoundError(
            f"No SQLite DLL archive links found on the download page "
            f"({len(references)} reference(s) scanned)")

    distinct = {v for v in versions.values() if v is not None}
    if not distinct:
        raise VersionUndeterminedError(
            "Could not derive a release version from: "
            + ", ".join(sorted(links.values())))
    if len(distinct) > 1:
        detail = ", ".join(f"{arch}={versions[arch]}" for arch in links)
        raise VersionMismatchError(
            f"Architectures disagree on the release version: {detail}")

    version = distinct.pop()
    logger.info("Found SQLite %s for %s", version, ", ".join(links))
    return DownloadInfo(version=version, links=links, skipped=skipped)
