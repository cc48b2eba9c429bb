"""
Tests for site bundle extraction and path helpers.
"""

import base64
import io
import zipfile

import pytest

from sitewarden.exceptions import ArchiveError
from sitewarden.models import ExtractedFile, FileEncoding
from sitewarden.services.archive_service import (
    decode_text,
    extract_archive,
    guess_media_type,
    normalize_asset_path,
    to_data_url,
)


def make_zip(entries) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries:
            archive.writestr(name, content)
    return buffer.getvalue()


class TestNormalizeAssetPath:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("./img/icon.png?v=2#x", "img/icon.png"),
            ("/favicon.ico", "favicon.ico"),
            ("././/assets/logo.svg", "assets/logo.svg"),
            ("assets\\icons\\a.png", "assets/icons/a.png"),
            ("", ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_asset_path(raw) == expected


class TestMediaTypes:

    def test_icon_overrides(self):
        assert guess_media_type("favicon.ico") == "image/x-icon"
        assert guess_media_type("logo.SVG") == "image/svg+xml"

    def test_standard_types(self):
        assert guess_media_type("img/a.png") == "image/png"
        assert guess_media_type("index.html") == "text/html"

    def test_unknown_extension(self):
        assert guess_media_type("data.unknownext") == "application/octet-stream"


class TestExtractArchive:

    def test_text_and_binary_entries(self):
        png = b"\x89PNG\r\n\x1a\n\xff\xfe"
        data = make_zip([
            ("index.html", "<html><title>Hi</title></html>"),
            ("assets/favicon.png", png),
        ])
        files = extract_archive(data)

        assert list(files) == ["index.html", "assets/favicon.png"]
        assert files["index.html"].encoding == FileEncoding.TEXT
        assert files["index.html"].media_type == "text/html"
        assert files["assets/favicon.png"].encoding == FileEncoding.BASE64
        assert base64.b64decode(files["assets/favicon.png"].data) == png

    def test_directories_skipped_and_paths_normalized(self):
        data = make_zip([
            ("site/", ""),
            ("./site/index.html", "<html></html>"),
        ])
        files = extract_archive(data)

        assert list(files) == ["site/index.html"]

    def test_duplicate_paths_keep_first(self):
        data = make_zip([
            ("index.html", "first"),
            ("/index.html", "second"),
        ])
        files = extract_archive(data)

        assert files["index.html"].data == "first"

    def test_corrupt_bundle_raises(self):
        with pytest.raises(ArchiveError):
            extract_archive(b"definitely not a zip file")


class TestEncodingHelpers:

    def test_decode_base64(self):
        file = ExtractedFile(data=base64.b64encode(b"<p>x</p>").decode(), encoding=FileEncoding.BASE64)
        assert decode_text(file) == "<p>x</p>"

    def test_decode_invalid_base64_reads_empty(self):
        file = ExtractedFile(data="***", encoding=FileEncoding.BASE64)
        assert decode_text(file) == ""

    def test_decode_missing(self):
        assert decode_text(None) == ""

    def test_text_data_url(self):
        file = ExtractedFile(data="<svg/>", encoding=FileEncoding.TEXT, media_type="image/svg+xml")
        assert to_data_url(file) == "data:image/svg+xml;base64," + base64.b64encode(b"<svg/>").decode()
