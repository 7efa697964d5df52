"""Generic HTML listing retriever.

Publishers that list documents as rows on paginated section pages differ only
in their CSS selectors and in how a row maps to a Document. This retriever
takes both as parameters:

- `ListingSelectors`: rows, link, date (+ format), title, PDF link, snippet,
  and the content element kept from each document page
- a row extractor: `(row, listing_url, selectors) -> Optional[Document]`

For every section URL it fetches `maxpages` listing pages
(`?delta={items_per_page}&start={pageno}`), extracts the rows, fetches each new
document page and its PDF, and yields the populated Document.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple
import logging
import os

from bs4 import BeautifulSoup

from ..pipeline.context import Document
from ..utils.dates import parse_date
from ..utils.html import element_attr, element_text, extract_text_from_html
from ..utils.network import build_session, http_get, http_get_binary
from ..utils.pdf import extract_text_from_pdf
from ..utils.urls import check_and_fix_url, make_unique_filename, sanitise_url_resource
from .base import Retriever

log = logging.getLogger("newslookout.sources.html_listing")


@dataclass
class ListingSelectors:
    rows: str
    link: str
    date: Optional[str] = None
    date_format: str = "%b %d, %Y"
    title: Optional[str] = None
    pdf_link: Optional[str] = None
    snippet: Optional[str] = None
    content: Optional[str] = None


RowExtractor = Callable[[object, str, ListingSelectors], Optional[Document]]


def extract_doc_from_row(row, listing_url: str, selectors: ListingSelectors) -> Optional[Document]:
    """Default row extractor: link, date, title, PDF link and snippet text."""
    link = element_attr(row.select_one(selectors.link), "href")
    if not link:
        return None
    doc = Document(url=link, links_inward=[listing_url])
    if selectors.date:
        date_str = element_text(row.select_one(selectors.date))
        dt = parse_date(date_str, (selectors.date_format,))
        if dt is not None:
            doc.set_publish_date(dt)
        elif date_str:
            log.warning(f"Could not parse date '{date_str}' for {link}")
    if selectors.title:
        doc.title = element_text(row.select_one(selectors.title))
    if not doc.title:
        doc.title = element_text(row.select_one(selectors.link))
    if selectors.pdf_link:
        doc.pdf_url = element_attr(row.select_one(selectors.pdf_link), "href") or ""
    if selectors.snippet:
        doc.referrer_text = " ".join(element_text(p) for p in row.select(selectors.snippet)).strip()
    return doc


def listing_page_url(section_url: str, items_per_page: int, pageno: int) -> str:
    sep = "&" if "?" in section_url else "?"
    return f"{section_url}{sep}delta={items_per_page}&start={pageno}"


class HtmlListingRetriever(Retriever):
    """Paginated listing pages -> document pages -> Documents."""
    name = "html_listing"
    publisher = ""
    base_url = ""
    sections: List[Tuple[str, str]] = []  # (listing url, section name)
    selectors: ListingSelectors = ListingSelectors(rows="", link="")

    def __init__(self, options, app_config, row_extractor: Optional[RowExtractor] = None):
        super().__init__(options, app_config)
        self.row_extractor = row_extractor or extract_doc_from_row
        self.net = app_config.network_parameters()
        self.data_dir = app_config.data_dir
        self.session = None

    def listing_urls(self, section_url: str) -> Iterator[str]:
        for pageno in range(1, self.options.maxpages + 1):
            yield listing_page_url(section_url, self.options.items_per_page, pageno)

    def retrieve(self) -> Iterable[Document]:
        self.session = build_session(self.net, referer=self.base_url)
        log.info(f"{self.name}: maxpages={self.options.maxpages}, items_per_page={self.options.items_per_page}")
        for section_url, section_name in self.sections:
            for page_url in self.listing_urls(section_url):
                log.info(f"{self.name}: retrieving url listing from {page_url}")
                content = http_get(self.session, page_url, self.net)
                if not content:
                    continue
                yield from self.docs_from_listing_page(content, page_url, section_name)

    def docs_from_listing_page(self, content: str, page_url: str, section_name: str) -> Iterator[Document]:
        soup = BeautifulSoup(content, "html.parser")
        for row in soup.select(self.selectors.rows):
            try:
                doc = self.row_extractor(row, page_url, self.selectors)
            except Exception:
                log.exception(f"{self.name}: could not read a row of {page_url}")
                continue
            if doc is None:
                continue
            doc.module = self.name
            doc.plugin_name = self.name
            doc.section_name = section_name
            doc.source_author = self.publisher

            proper_url = check_and_fix_url(doc.url, self.base_url)
            if proper_url is None:
                log.info(f"{self.name}: ignoring invalid url {doc.url}")
                continue
            doc.url = proper_url
            if doc.pdf_url:
                doc.pdf_url = check_and_fix_url(doc.pdf_url, self.base_url) or ""
            if not self.claim(doc.url):
                log.info(f"{self.name}: ignoring already retrieved url {doc.url}")
                continue
            try:
                self.populate_content(doc)
                doc.filename = os.path.join(self.data_dir, make_unique_filename(doc, "json"))
                self.load_pdf_content(doc)
                self.custom_processing(doc)
            except Exception:
                log.exception(f"{self.name}: skipping {doc.url} after an error")
                continue
            log.debug(f"{self.name}: got {doc.url} with {len(doc.html_content)} chars of html")
            yield doc

    def populate_content(self, doc: Document) -> None:
        html = http_get(self.session, doc.url, self.net)
        if not html or not self.selectors.content:
            doc.html_content = html
            return
        page = BeautifulSoup(html, "html.parser")
        content = page.select_one(self.selectors.content)
        doc.html_content = str(content) if content is not None else html

    def load_pdf_content(self, doc: Document) -> None:
        """Download the linked PDF into data_dir and use its text as the document text."""
        if not doc.pdf_url:
            return
        data = http_get_binary(self.session, doc.pdf_url, self.net)
        if not data:
            return
        pdf_name = f"{self.name}_{sanitise_url_resource(doc.pdf_url)[-64:]}"
        if not pdf_name.lower().endswith(".pdf"):
            pdf_name += ".pdf"
        pdf_path = os.path.join(self.data_dir, pdf_name)
        try:
            with open(pdf_path, "wb") as f:
                f.write(data)
        except OSError as e:
            log.error(f"{self.name}: could not save PDF {doc.pdf_url} to {pdf_path}: {e}")
            return
        text = extract_text_from_pdf(pdf_path)
        if text:
            doc.text = text

    def custom_processing(self, doc: Document) -> None:
        if not doc.text:
            doc.text = extract_text_from_html(doc.html_content)
