"""Adapter for the public ``htmlview`` rendering of a Google Sheet.

No credentials are needed: the spreadsheet must be shared as "anyone with
the link can view". The landing page embeds one
``items.push({name: ..., pageUrl: ..., gid: ...})`` call per tab in an inline
script; ``parse_sheet_tabs`` scrapes those. It is the only code that knows
the markup, so an upstream change breaks exactly one function.

Tab pages reference assets with root-relative URLs. ``rewrite_urls`` makes
them absolute so the HTML renders when served from this origin.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from sheetview.errors import ErrorCode, SheetViewError
from sheetview.models.cache import TabDescriptor

if TYPE_CHECKING:
    from sheetview.fetcher import Fetcher

log = structlog.get_logger()

GOOGLE_DOCS_ORIGIN = "https://docs.google.com"

_TAB_ITEM_RE = re.compile(
    r'items\.push\(\{name:\s*"([^"]+)",\s*pageUrl:\s*"([^"]+)",\s*gid:\s*"(\d+)"'
)

# A single leading slash only; "//host/..." is protocol-relative, not root-relative.
_ROOT_RELATIVE_ATTR_RE = re.compile(r"""\b(href|src)=(["'])/(?!/)""")
_ROOT_RELATIVE_CSS_RE = re.compile(r"url\(/(?!/)")
_PROTOCOL_RELATIVE_GSTATIC_RE = re.compile(r"(?<![:\w])//ssl\.gstatic\.com")


def htmlview_url(spreadsheet_id: str) -> str:
    return f"{GOOGLE_DOCS_ORIGIN}/spreadsheets/d/{spreadsheet_id}/htmlview"


def _unescape_js(value: str) -> str:
    return value.replace("\\x3d", "=").replace("\\/", "/")


def parse_sheet_tabs(markup: str) -> list[TabDescriptor]:
    """Extract tab descriptors from htmlview markup, in page order."""
    return [
        TabDescriptor(name=name, id=gid, page_url=_unescape_js(page_url))
        for name, page_url, gid in _TAB_ITEM_RE.findall(markup)
    ]


def rewrite_urls(html: str) -> str:
    """Point root-relative and protocol-relative asset URLs at Google."""
    html = _ROOT_RELATIVE_ATTR_RE.sub(rf"\1=\2{GOOGLE_DOCS_ORIGIN}/", html)
    html = _ROOT_RELATIVE_CSS_RE.sub(f"url({GOOGLE_DOCS_ORIGIN}/", html)
    return _PROTOCOL_RELATIVE_GSTATIC_RE.sub("https://ssl.gstatic.com", html)


class PublishedSheetSource:
    """RefreshSource[str] reading a published spreadsheet's htmlview pages."""

    def __init__(self, fetcher: Fetcher, spreadsheet_id: str) -> None:
        self._fetcher = fetcher
        self._spreadsheet_id = spreadsheet_id

    async def fetch_tabs(self) -> list[TabDescriptor]:
        url = htmlview_url(self._spreadsheet_id)
        log.info("htmlview_fetch_started", url=url)
        markup = await self._fetcher.fetch_text(url)

        tabs = parse_sheet_tabs(markup)
        if not tabs:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message="No sheets found in spreadsheet",
            )
        return tabs

    async def fetch_payload(self, tab: TabDescriptor) -> str:
        if not tab.page_url:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Tab {tab.name!r} has no page URL",
            )
        log.debug("htmlview_tab_fetch_started", tab=tab.name, gid=tab.id)
        html = await self._fetcher.fetch_text(tab.page_url)
        return rewrite_urls(html)

    def empty_payload(self) -> str:
        return ""
