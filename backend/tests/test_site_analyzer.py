"""
Unit tests for the Archive Analyzer.

Covers entry selection, SEO scoring, favicon resolution, the rule-based
audit and live-document fetching.
"""

import base64

import httpx
import pytest

from sitewarden.exceptions import AnalysisFetchError
from sitewarden.models import ExtractedFile, FileEncoding
from sitewarden.services.site_analyzer import SiteAnalyzer, compute_seo_score

TITLE_AND_DESCRIPTION = (
    '<html><head><title>T</title><meta name="description" content="D"></head>'
    "<body></body></html>"
)


@pytest.fixture
def analyzer():
    return SiteAnalyzer()


def binary(data: bytes, media_type: str) -> ExtractedFile:
    return ExtractedFile(
        data=base64.b64encode(data).decode("ascii"),
        encoding=FileEncoding.BASE64,
        media_type=media_type,
    )


class TestScoring:

    def test_title_and_description_clamped_to_100(self, analyzer):
        result = analyzer.analyze_files({"index.html": TITLE_AND_DESCRIPTION})

        assert result.title == "T"
        assert result.description == "D"
        assert result.script_count == 0
        assert result.page_count == 1
        assert result.seo_score == 100

    def test_extra_pages_do_not_exceed_100(self, analyzer):
        files = {
            "index.html": TITLE_AND_DESCRIPTION,
            "about.html": "<html></html>",
            "contact.htm": "<html></html>",
            "blog/post.html": "<html></html>",
        }
        result = analyzer.analyze_files(files)

        assert result.page_count == 4
        assert result.seo_score == 100

    def test_empty_bundle(self, analyzer):
        result = analyzer.analyze_files({})

        assert (result.title, result.description) == ("", "")
        assert (result.script_count, result.page_count, result.seo_score) == (0, 0, 50)
        assert result.favicon_path is None
        assert result.favicon_data_url is None

    def test_scripts_reduce_score(self, analyzer):
        scripts = "".join("<script></script>" for _ in range(5))
        result = analyzer.analyze_files({"index.html": f"<html><body>{scripts}</body></html>"})

        # 50 + 15 (allowance left) + 4 (one page)
        assert result.script_count == 5
        assert result.seo_score == 69

    def test_compute_seo_score_bounds(self):
        assert compute_seo_score("", "", 100, 0) == 50
        assert compute_seo_score("t", "d", 0, 50) == 100

    def test_first_html_entry_used_without_index(self, analyzer):
        files = {
            "styles/site.css": "body {}",
            "home.html": "<html><head><title>Home</title></head></html>",
        }
        result = analyzer.analyze_files(files)

        assert result.title == "Home"
        assert result.page_count == 1

    def test_malformed_markup_does_not_raise(self, analyzer):
        result = analyzer.analyze_files({"index.html": "<html><head><title>Broken<meta <<<"})

        assert result.page_count == 1
        assert 0 <= result.seo_score <= 100

    def test_single_document_mode(self, analyzer):
        result = analyzer.analyze_document(TITLE_AND_DESCRIPTION)

        assert result.title == "T"
        assert result.page_count == 1

    def test_single_document_mode_empty(self, analyzer):
        result = analyzer.analyze_document("   ")

        assert result.page_count == 0
        assert result.seo_score == 50

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_index_counts_no_pages(self, analyzer, content):
        result = analyzer.analyze_files({"index.html": content})

        assert (result.page_count, result.seo_score) == (0, 50)
        assert result == analyzer.analyze_document(content)


class TestFavicon:

    def test_conventional_location(self, analyzer):
        png = b"\x89PNG\r\n\x1a\nfake"
        files = {
            "index.html": "<html></html>",
            "assets/favicon.png": binary(png, "image/png"),
        }
        result = analyzer.analyze_files(files)

        assert result.favicon_path == "assets/favicon.png"
        assert result.favicon_data_url == "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    def test_inline_data_uri_used_verbatim(self, analyzer):
        href = "data:image/svg+xml;base64,PHN2Zy8+"
        html = f'<html><head><link rel="icon" href="{href}"></head></html>'
        result = analyzer.analyze_files({"index.html": html})

        assert result.favicon_path == "inline"
        assert result.favicon_data_url == href

    def test_declared_href_normalized(self, analyzer):
        html = '<html><head><link rel="shortcut icon" href="./img/brand.ico?v=3"></head></html>'
        files = {
            "index.html": html,
            "img/brand.ico": binary(b"\x00\x00\x01\x00", "image/x-icon"),
            "favicon.ico": binary(b"other", "image/x-icon"),
        }
        result = analyzer.analyze_files(files)

        assert result.favicon_path == "img/brand.ico"
        assert result.favicon_data_url.startswith("data:image/x-icon;base64,")

    def test_declared_href_suffix_match(self, analyzer):
        html = '<html><head><link rel="apple-touch-icon icon" href="/brand.png"></head></html>'
        files = {
            "index.html": html,
            "site/static/brand.png": binary(b"png", "image/png"),
        }
        result = analyzer.analyze_files(files)

        assert result.favicon_path == "site/static/brand.png"

    def test_last_resort_any_icon_like_file(self, analyzer):
        files = {
            "index.html": "<html></html>",
            "photos/team.JPG": binary(b"jpeg", "image/jpeg"),
        }
        result = analyzer.analyze_files(files)

        assert result.favicon_path == "photos/team.JPG"
        assert result.favicon_data_url.startswith("data:image/jpeg;base64,")

    def test_missing_media_type_defaults_to_icon(self, analyzer):
        files = {
            "index.html": "<html></html>",
            "favicon.ico": ExtractedFile(data="AAAB", encoding=FileEncoding.BASE64, media_type=None),
        }
        result = analyzer.analyze_files(files)

        assert result.favicon_data_url == "data:image/x-icon;base64,AAAB"

    def test_as_dict_omits_missing_favicon(self, analyzer):
        result = analyzer.analyze_files({"index.html": TITLE_AND_DESCRIPTION})

        assert "favicon_data_url" not in result.as_dict()


class TestAudit:

    def test_bare_document_gets_all_suggestions(self, analyzer):
        audit = analyzer.audit_document("<html><body><p>hi</p></body></html>")

        assert audit.suggestions == [
            "Add a <title> tag.",
            "Add a meta description.",
            "Add more semantic headings (H2/H3).",
            "Add internal/external links.",
        ]

    def test_complete_document_has_no_suggestions(self, analyzer):
        links = "".join(f'<a href="/p{i}">p{i}</a>' for i in range(5))
        html = (
            '<html><head><title>T</title><meta name="description" content="D"></head>'
            f"<body><h1>A</h1><h2>B</h2><h3>C</h3>{links}</body></html>"
        )
        audit = analyzer.audit_document(html)

        assert audit.heading_count == 3
        assert audit.link_count == 5
        assert audit.suggestions == []


class TestAnalyzeUrl:

    @pytest.mark.asyncio
    async def test_fetches_and_analyzes(self, analyzer):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=TITLE_AND_DESCRIPTION))
        async with httpx.AsyncClient(transport=transport) as client:
            result = await analyzer.analyze_url("https://site.example.com", client)

        assert result.title == "T"
        assert result.seo_score == 100

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, analyzer):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(AnalysisFetchError):
                await analyzer.analyze_url("https://site.example.com", client)

    @pytest.mark.asyncio
    async def test_network_error_raises(self, analyzer):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(AnalysisFetchError):
                await analyzer.analyze_url("https://site.example.com", client)

    @pytest.mark.asyncio
    async def test_missing_url_raises(self, analyzer):
        with pytest.raises(AnalysisFetchError):
            await analyzer.analyze_url("")
