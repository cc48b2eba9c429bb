"""
Site Analyzer for static site bundles.

Derives SEO signals and a favicon from an ExtractedFileSet (an uploaded
bundle) or from a single live document.

Key Features:
- Entry document selection (index.html, else first HTML page)
- Title / meta description / script extraction via BeautifulSoup
- Page counting across the bundle
- Heuristic SEO score (0-100)
- Favicon resolution: inline data URI, declared icon, conventional
  locations, then any image-like file
- Rule-based SEO audit with actionable suggestions

Malformed or missing markup never raises; it analyses as an empty document.

Usage:
    from sitewarden.services.site_analyzer import site_analyzer

    result = site_analyzer.analyze_files(extract_archive(bundle_bytes))
    result = await site_analyzer.analyze_url("https://example.pages.dev")
"""

import logging
import re
from typing import List, Mapping, Optional, Tuple, Union

import httpx
from bs4 import BeautifulSoup

from ..config import settings
from ..exceptions import AnalysisFetchError
from ..models import ExtractedFile, ExtractedFileSet, SeoAudit, SiteAnalysisResult
from .archive_service import (
    coerce_file_set,
    decode_text,
    normalize_asset_path,
    to_data_url,
)

logger = logging.getLogger("sitewarden.analyzer")

INDEX_PATH = "index.html"
HTML_SUFFIXES = (".html", ".htm")

FALLBACK_FAVICON_NAMES = (
    "favicon.ico",
    "favicon.png",
    "favicon.svg",
    "images/favicon.ico",
    "images/favicon.png",
    "images/favicon.svg",
    "assets/favicon.ico",
    "assets/favicon.png",
    "assets/favicon.svg",
)

ICON_FILE_RE = re.compile(r"\.(ico|png|jpg|jpeg|svg)$", re.IGNORECASE)

INLINE_FAVICON_LABEL = "inline"

# Score weights
BASE_SCORE = 50
TITLE_POINTS = 15
DESCRIPTION_POINTS = 15
SCRIPT_ALLOWANCE = 20
POINTS_PER_PAGE = 4
MAX_PAGE_POINTS = 20

# Audit thresholds
MIN_HEADINGS = 3
MIN_LINKS = 5


def compute_seo_score(title: str, description: str, script_count: int, page_count: int) -> int:
    """
    Heuristic SEO score.

    50 base, +15 for a title, +15 for a description, up to +20 for light
    script usage (one point lost per script), and +4 per page capped at +20.
    Clamped to 0..100.
    """
    score = BASE_SCORE
    if title:
        score += TITLE_POINTS
    if description:
        score += DESCRIPTION_POINTS
    score += max(0, SCRIPT_ALLOWANCE - script_count)
    score += min(MAX_PAGE_POINTS, page_count * POINTS_PER_PAGE)
    return min(100, max(0, int(round(score))))


def _is_html_path(path: str) -> bool:
    return path.lower().endswith(HTML_SUFFIXES)


def _parse(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "<html></html>", "html.parser")


def _rel_tokens(link) -> List[str]:
    rel = link.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel]


def _declared_icon_href(soup: BeautifulSoup) -> str:
    """
    href of the page's icon link.

    Preference: rel="shortcut icon", then rel="icon", then any rel list
    containing the "icon" token.
    """
    links = soup.find_all("link", href=True)
    for wanted in (["shortcut", "icon"], ["icon"]):
        for link in links:
            if _rel_tokens(link) == wanted:
                return link["href"].strip()
    for link in links:
        if "icon" in _rel_tokens(link):
            return link["href"].strip()
    return ""


def _meta_description(soup: BeautifulSoup) -> str:
    tag = soup.find("meta", attrs={"name": lambda value: bool(value) and value.lower() == "description"})
    if tag is None:
        return ""
    content = tag.get("content") or ""
    return content.strip() if isinstance(content, str) else ""


class SiteAnalyzer:
    """
    Static-site analysis service.

    Stateless; a single module-level instance is shared. Network access is
    limited to ``analyze_url``.
    """

    # =========================================================================
    # Bundle analysis
    # =========================================================================

    def analyze_files(
        self,
        files: Optional[Mapping[str, Union[ExtractedFile, str, bytes]]],
    ) -> SiteAnalysisResult:
        """
        Analyse an extracted bundle.

        Args:
            files: ExtractedFileSet; plain ``str`` values are accepted as text files

        Returns:
            SiteAnalysisResult (favicon fields are None when nothing was found)
        """
        file_set = coerce_file_set(files)
        html_paths = [path for path in file_set if _is_html_path(path)]

        entry = file_set.get(INDEX_PATH)
        if entry is None and html_paths:
            entry = file_set[html_paths[0]]
        content = decode_text(entry)
        has_document = bool(content.strip())

        soup = _parse(content)
        title_tag = soup.find("title")
        title = title_tag.get_text().strip() if title_tag else ""
        description = _meta_description(soup)
        script_count = len(soup.find_all("script"))
        if has_document:
            page_count = len(html_paths) or 1
        else:
            page_count = 0

        favicon_path, favicon_data_url = self._resolve_favicon(soup, file_set)

        # A blank entry document scores the baseline, not the script allowance
        if has_document:
            seo_score = compute_seo_score(title, description, script_count, page_count)
        else:
            seo_score = BASE_SCORE

        result = SiteAnalysisResult(
            title=title,
            description=description,
            script_count=script_count,
            page_count=page_count,
            seo_score=seo_score,
            favicon_path=favicon_path,
            favicon_data_url=favicon_data_url,
        )
        logger.debug(
            f"Analysed bundle: {len(file_set)} files, {page_count} pages, score {result.seo_score}"
        )
        return result

    def analyze_document(self, html: str) -> SiteAnalysisResult:
        """Single-document mode: treat ``html`` as the bundle's index.html."""
        if not html or not html.strip():
            return self.analyze_files({})
        return self.analyze_files({INDEX_PATH: html})

    async def analyze_url(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> SiteAnalysisResult:
        """
        Fetch one live document and analyse it in single-document mode.

        Raises:
            AnalysisFetchError: Missing URL, network error or non-2xx response
        """
        html = await self.fetch_document(url, client)
        return self.analyze_document(html)

    async def fetch_document(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> str:
        if not url:
            raise AnalysisFetchError("Missing URL for analysis")

        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=settings.http_timeout_seconds,
                headers={"User-Agent": settings.http_user_agent},
            )
        try:
            response = await client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise AnalysisFetchError(f"Failed to load site for analysis: {e}") from e
        finally:
            if owns_client:
                await client.aclose()

        if not response.is_success:
            raise AnalysisFetchError(f"Failed to load site for analysis: {response.status_code}")
        return response.text

    # =========================================================================
    # SEO audit
    # =========================================================================

    def audit_document(self, html: str) -> SeoAudit:
        """
        Rule-based audit of one document.

        Suggests a title, a meta description, at least three h1-h3 headings
        and at least five links when missing.
        """
        soup = _parse(html)
        title_tag = soup.find("title")
        title = title_tag.get_text().strip() if title_tag else ""
        description = _meta_description(soup)
        heading_count = len(soup.find_all(["h1", "h2", "h3"]))
        link_count = len(soup.find_all("a"))

        suggestions: List[str] = []
        if not title:
            suggestions.append("Add a <title> tag.")
        if not description:
            suggestions.append("Add a meta description.")
        if heading_count < MIN_HEADINGS:
            suggestions.append("Add more semantic headings (H2/H3).")
        if link_count < MIN_LINKS:
            suggestions.append("Add internal/external links.")

        return SeoAudit(heading_count=heading_count, link_count=link_count, suggestions=suggestions)

    # =========================================================================
    # Favicon resolution
    # =========================================================================

    def _resolve_favicon(
        self,
        soup: BeautifulSoup,
        files: ExtractedFileSet,
    ) -> Tuple[Optional[str], Optional[str]]:
        declared = _declared_icon_href(soup)
        if declared.lower().startswith("data:"):
            return INLINE_FAVICON_LABEL, declared

        candidates = []
        if declared:
            candidates.append(declared)
        candidates.extend(FALLBACK_FAVICON_NAMES)

        for candidate in candidates:
            match = self._find_file(normalize_asset_path(candidate), files)
            if match:
                path, file = match
                return path, to_data_url(file)

        for path, file in files.items():
            if ICON_FILE_RE.search(path):
                return path, to_data_url(file)

        return None, None

    @staticmethod
    def _find_file(
        candidate: str,
        files: ExtractedFileSet,
    ) -> Optional[Tuple[str, ExtractedFile]]:
        """Exact path match first, then a path-segment suffix match (case-insensitive)."""
        if not candidate:
            return None
        if candidate in files:
            return candidate, files[candidate]
        lowered = candidate.lower()
        for path, file in files.items():
            key = path.lower()
            if key == lowered or key.endswith("/" + lowered):
                return path, file
        return None


# Global analyzer instance
site_analyzer = SiteAnalyzer()
