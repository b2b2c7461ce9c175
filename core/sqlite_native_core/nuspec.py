"""
nuspec.py — keep the SQLite.Native.nuspec manifest in step with a release

The manifest is parsed with xml.etree.ElementTree, edited as a tree and
written back. Comments, the default namespace, the XML declaration, a
leading byte order mark and the indentation of untouched elements survive
the round trip, and every edit is an upsert, so running the update twice
gives the same file.

File entries are expected in the form:

    <file src="3.50.4\\win-x64\\sqlite3.dll"
          target="runtimes\\win-x64\\native\\sqlite3.dll" />
"""

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from .errors import ManifestError

logger = logging.getLogger(__name__)

DEFAULT_NUSPEC = "SQLite.Native.nuspec"

LEGACY_DESCRIPTION = (
    "Native SQLite library (sqlite3.dll) for Windows x86 and x64.")
ARM64_DESCRIPTION = (
    "Native SQLite library (sqlite3.dll) for Windows x86, x64 and ARM64.")

ARM64_TAG = "arm64"

# Used when the manifest has no x86 entries to copy from
DEFAULT_ARM64_FILES = ("sqlite3.dll", "sqlite3.def")

_SRC_RE = re.compile(
    r"^(?P<prefix>(?:.*[\\/])?)(?P<version>[^\\/]+)(?P<sep>[\\/])"
    r"win-(?P<arch>x86|x64|arm64)[\\/](?P<filename>[^\\/]+)$")

_XML_DECL_RE = re.compile(r"^\s*(<\?xml[^>]*\?>)")


@dataclass
class FileEntry:
    """Typed view of one <file src=... target=...> element."""
    element: ET.Element
    prefix: str
    version: str
    sep: str
    arch: str
    filename: str

    @property
    def src(self):
        return self.element.get("src")

    @property
    def target(self):
        return self.element.get("target", "")

    @property
    def is_definition(self):
        return self.filename.lower().endswith(".def")

    def src_for(self, version, arch=None):
        arch = arch or self.arch
        return (f"{self.prefix}{version}{self.sep}win-{arch}"
                f"{self.sep}{self.filename}")


def parse_file_entry(element):
    """Return a FileEntry for a <file> element, or None if src is foreign."""
    m = _SRC_RE.match(element.get("src", ""))
    if not m:
        return None
    return FileEntry(element=element, **m.groupdict())


class NuspecDocument:
    """A parsed .nuspec file."""

    def __init__(self, root, declaration=None, trailing_newline=True,
                 bom=False):
        self.root = root
        self.declaration = declaration
        self.trailing_newline = trailing_newline
        self.bom = bom
        m = re.match(r"^\{([^}]*)\}", root.tag)
        self.namespace = m.group(1) if m else ""

    @classmethod
    def parse(cls, text):
        bom = text.startswith("\ufeff")
        if bom:
            text = text[1:]
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            root = ET.fromstring(text, parser=parser)
        except ET.ParseError as e:
            raise ManifestError(f"Invalid nuspec XML: {e}") from e
        decl = _XML_DECL_RE.match(text)
        return cls(root,
                   declaration=decl.group(1) if decl else None,
                   trailing_newline=text.endswith("\n"),
                   bom=bom)

    @classmethod
    def load(cls, path):
        with open(path, "r", encoding="utf-8") as f:
            return cls.parse(f.read())

    def _q(self, tag):
        return f"{{{self.namespace}}}{tag}" if self.namespace else tag

    def _metadata_child(self, tag):
        metadata = self.root.find(self._q("metadata"))
        if metadata is None:
            return None
        return metadata.find(self._q(tag))

    @property
    def files_element(self):
        return self.root.find(self._q("files"))

    def file_entries(self):
        files = self.files_element
        if files is None:
            return []
        entries = []
        for element in files.findall(self._q("file")):
            entry = parse_file_entry(element)
            if entry is not None:
                entries.append(entry)
        return entries

    @property
    def version(self):
        el = self._metadata_child("version")
        return el.text.strip() if el is not None and el.text else None

    # ------------------------------------------------------------------
    # Edits: each returns a list of human-readable changes
    # ------------------------------------------------------------------

    def set_version(self, version):
        el = self._metadata_child("version")
        if el is None or (el.text or "").strip() == version:
            return []
        old = (el.text or "").strip()
        el.text = version
        return [f"version {old} -> {version}"]

    def update_file_versions(self, version):
        changes = []
        for entry in self.file_entries():
            if entry.version == version:
                continue
            new_src = entry.src_for(version)
            changes.append(f"file {entry.src} -> {new_src}")
            entry.element.set("src", new_src)
        return changes

    def upsert_arm64_entries(self, version):
        """Add arm64 file entries after the x86 definition file entry.

        Existing arm64 entries are left to update_file_versions.
        """
        files = self.files_element
        if files is None:
            return []
        entries = self.file_entries()
        if any(e.arch == "arm64" for e in entries):
            return []

        x86 = [e for e in entries if e.arch == "x86"]
        if x86:
            new_elements = [self._arm64_from(e, version) for e in x86]
            anchor = next((e for e in reversed(x86) if e.is_definition),
                          x86[-1]).element
        else:
            new_elements = [self._default_arm64(name, version)
                            for name in DEFAULT_ARM64_FILES]
            children = list(files)
            anchor = children[-1] if children else None

        self._insert_after(files, anchor, new_elements)
        return [f"file + {el.get('src')}" for el in new_elements]

    def _arm64_from(self, entry, version):
        element = ET.Element(entry.element.tag, dict(entry.element.attrib))
        element.set("src", entry.src_for(version, arch="arm64"))
        if entry.target:
            element.set("target", re.sub(r"\bx86\b", "arm64", entry.target))
        return element

    def _default_arm64(self, filename, version):
        return ET.Element(self._q("file"), {
            "src": f"{version}\\win-arm64\\{filename}",
            "target": f"runtimes\\win-arm64\\native\\{filename}",
        })

    @staticmethod
    def _insert_after(parent, anchor, new_elements):
        """Insert elements after anchor, copying the sibling indentation."""
        if anchor is None:
            item_tail = parent.text if parent.text and not parent.text.strip() else "\n    "
            closing = "\n  "
            parent.text = item_tail
            index = 0
        else:
            children = list(parent)
            index = children.index(anchor) + 1
            closing = anchor.tail
            item_tail = parent.text if parent.text and not parent.text.strip() else anchor.tail
            anchor.tail = item_tail

        for offset, element in enumerate(new_elements):
            element.tail = item_tail
            parent.insert(index + offset, element)
        new_elements[-1].tail = closing

    def add_tag(self, tag=ARM64_TAG):
        el = self._metadata_child("tags")
        if el is None:
            return []
        text = el.text or ""
        if tag.lower() in (t.lower() for t in text.split()):
            return []
        el.text = f"{text.rstrip()} {tag}" if text.strip() else tag
        return [f"tag + {tag}"]

    def update_description(self):
        el = self._metadata_child("description")
        if el is None or el.text != LEGACY_DESCRIPTION:
            return []
        el.text = ARM64_DESCRIPTION
        return ["description updated for ARM64"]

    def apply_release(self, version):
        """Apply every edit for a release; returns the combined changes."""
        changes = []
        changes += self.set_version(version)
        changes += self.update_file_versions(version)
        changes += self.upsert_arm64_entries(version)
        changes += self.add_tag()
        changes += self.update_description()
        return changes

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_string(self):
        if self.namespace:
            ET.register_namespace("", self.namespace)
        body = ET.tostring(self.root, encoding="unicode")
        text = f"{self.declaration}\n{body}" if self.declaration else body
        if self.trailing_newline:
            text += "\n"
        return text

    def save(self, path):
        encoding = "utf-8-sig" if self.bom else "utf-8"
        with open(path, "w", encoding=encoding, newline="") as f:
            f.write(self.to_string())


def read_file_entries(path=DEFAULT_NUSPEC):
    """Return the typed <file> entries of a nuspec file."""
    return NuspecDocument.load(path).file_entries()


def update_nuspec(version, path=DEFAULT_NUSPEC):
    """Rewrite a nuspec manifest for a new SQLite release.

    Args:
        version: Dotted release version, e.g. "3.50.4".
        path: Manifest path (default: SQLite.Native.nuspec in the cwd).

    Returns:
        List of changes made (empty if already current), or None when
        the manifest does not exist.

    Raises:
        ManifestError: The manifest is not well-formed XML.
    """
    if not os.path.isfile(path):
        logger.warning("Manifest not found, skipping update: %s", path)
        return None

    doc = NuspecDocument.load(path)
    changes = doc.apply_release(version)
    if changes:
        doc.save(path)
        logger.info("Updated %s: %d change(s)", path, len(changes))
    else:
        logger.info("Manifest already up to date: %s", path)
    return changes
