"""
Shared test fixtures for the SQLite native updater test suite.

  - download_html: download page with x86/x64/arm64 DLL links for 3.50.4
  - nuspec_path: copy of a SQLite.Native.nuspec for 3.45.1 (x86 + x64)
  - fake_site: patches urlopen so URLs are served from a dict (no network)
  - make_zip: builds zip archive bytes from {name: content}
"""

import io
import os
import shutil
import sys
import urllib.error
import zipfile
from unittest import mock

import pytest

# Make scripts/ importable (update_sqlite.py)
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'scripts'))

PAGE_URL = "https://www.sqlite.org/download.html"

DLL_URLS = {
    "x86": "https://www.sqlite.org/2025/sqlite-dll-win-x86-3500400.zip",
    "x64": "https://www.sqlite.org/2025/sqlite-dll-win-x64-3500400.zip",
    "arm64": "https://www.sqlite.org/2025/sqlite-dll-win-arm64-3500400.zip",
}


def render_download_page(references):
    """Render a download page whose inline script sets the given hrefs."""
    calls = "\n".join(
        f"d391('a{i}','{ref}');" for i, ref in enumerate(references, start=1))
    return f"""<!DOCTYPE html>
<html><head>
<meta http-equiv="content-type" content="text/html; charset=UTF-8">
<title>SQLite Download Page</title>
</head>
<body>
<h2>Precompiled Binaries for Windows</h2>
<table>
<tr><td><a id="a1" href="hp1.html">sqlite-amalgamation-3500400.zip</a></td></tr>
<tr><td><a id="a2" href="hp1.html">sqlite-dll-win-x86-3500400.zip</a></td></tr>
</table>
<script type="text/JavaScript">
function d391(a,b){{document.getElementById(a).href=b;}}
{calls}
</script>
</body></html>
"""


@pytest.fixture
def download_html():
    return render_download_page([
        "2025/sqlite-amalgamation-3500400.zip",
        "2025/sqlite-dll-win-x86-3500400.zip",
        "2025/sqlite-dll-win-x64-3500400.zip",
        "2025/sqlite-dll-win-arm64-3500400.zip",
        "2025/sqlite-tools-win-x64-3500400.zip",
    ])


NUSPEC_TEXT = r"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">
  <metadata>
    <id>SQLite.Native</id>
    <version>3.45.1</version>
    <description>Native SQLite library (sqlite3.dll) for Windows x86 and x64.</description>
    <tags>sqlite native x86 x64</tags>
  </metadata>
  <files>
    <!-- unmodified upstream binaries -->
    <file src="3.45.1\win-x64\sqlite3.dll" target="runtimes\win-x64\native\sqlite3.dll" />
    <file src="3.45.1\win-x64\sqlite3.def" target="runtimes\win-x64\native\sqlite3.def" />
    <file src="3.45.1\win-x86\sqlite3.dll" target="runtimes\win-x86\native\sqlite3.dll" />
    <file src="3.45.1\win-x86\sqlite3.def" target="runtimes\win-x86\native\sqlite3.def" />
    <file src="build\SQLite.Native.targets" target="build" />
  </files>
</package>
"""


@pytest.fixture
def nuspec_path(tmp_path):
    path = tmp_path / "SQLite.Native.nuspec"
    path.write_text(NUSPEC_TEXT, encoding="utf-8")
    return str(path)


@pytest.fixture
def repo_nuspec_path(tmp_path):
    """Copy of the nuspec shipped at the repository root."""
    src = os.path.join(os.path.dirname(os.path.dirname(__file__)),
                       "SQLite.Native.nuspec")
    dest = tmp_path / "SQLite.Native.nuspec"
    shutil.copyfile(src, dest)
    return str(dest)


def make_zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


@pytest.fixture(name="make_zip")
def make_zip_fixture():
    return make_zip


def dll_zip(tag):
    return make_zip({
        "sqlite3.dll": f"MZ dll {tag}".encode(),
        "sqlite3.def": f"EXPORTS ; {tag}".encode(),
    })


class FakeSite:
    """Serves URL -> bytes (or raises URL -> exception) for urlopen."""

    def __init__(self):
        self.routes = {}
        self.requested = []

    def urlopen(self, req, timeout=None, context=None):
        url = req.full_url
        self.requested.append(url)
        body = self.routes.get(url)
        if body is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, str):
            body = body.encode("utf-8")
        resp = mock.MagicMock()
        resp.read = io.BytesIO(body).read
        resp.headers.get_content_charset.return_value = "utf-8"
        resp.__enter__.return_value = resp
        resp.__exit__.return_value = False
        return resp


@pytest.fixture
def fake_site():
    site = FakeSite()
    with mock.patch("sqlite_native_core.download_client.urllib.request.urlopen",
                    side_effect=site.urlopen):
        yield site


@pytest.fixture
def sqlite_org(fake_site, download_html):
    """fake_site serving the download page and all three DLL archives."""
    fake_site.routes[PAGE_URL] = download_html
    for arch, url in DLL_URLS.items():
        fake_site.routes[url] = dll_zip(arch)
    return fake_site


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SQLITE_DOWNLOAD_PAGE_URL", "SQLITE_NATIVE_SSL_VERIFY",
                 "SQLITE_NATIVE_SSL_CERT"):
        monkeypatch.delenv(name, raising=False)
