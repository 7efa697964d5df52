"""Reserve Bank of India notifications retriever (`mod_en_in_rbi`).

Sections: circulars, press releases, draft notifications, master directions
and circulars, notifications, legal framework pages, speeches, reports and
bulletins on https://website.rbi.org.in/.

Each listing row carries a snippet such as

    RBI/2024-25/12 DOR.STR.REC.5/21.04.048/2024-25 April 2, 2024 All Commercial Banks Madam / Dear Sir,

from which the circular number (`unique_id`) and the addressees
(`recipients`) are read.
"""

from __future__ import annotations
import re
from typing import Optional

from ..pipeline.context import (
    Document,
    DATA_PROC_CLASSIFY_INDUSTRY,
    DATA_PROC_CLASSIFY_MARKET,
    DATA_PROC_CLASSIFY_PRODUCT,
    DATA_PROC_EXTRACT_ACTIONS,
    DATA_PROC_EXTRACT_NAME_ENTITY,
    DATA_PROC_SUMMARIZE,
)
from ..utils.text import clean_recipients
from .html_listing import HtmlListingRetriever, ListingSelectors, extract_doc_from_row

PLUGIN_NAME = "mod_en_in_rbi"
PUBLISHER_NAME = "Reserve Bank of India"
BASE_URL = "https://website.rbi.org.in/"

RBI_SECTIONS = [
    ("https://website.rbi.org.in/web/rbi/notifications/rbi-circulars", "Circular"),
    ("https://website.rbi.org.in/web/rbi/press-releases", "Press Release"),
    ("https://website.rbi.org.in/web/rbi/notifications/draft-notifications", "Draft Notifications"),
    ("https://website.rbi.org.in/web/rbi/notifications/master-directions", "Master Directions"),
    ("https://website.rbi.org.in/en/web/rbi/notifications/master-circulars", "Master Circulars"),
    ("https://website.rbi.org.in/web/rbi/notifications", "Notifications"),
    ("https://website.rbi.org.in/web/rbi/about-us/legal-framework/act", "Acts"),
    ("https://website.rbi.org.in/web/rbi/about-us/legal-framework/rules", "Rules"),
    ("https://website.rbi.org.in/web/rbi/about-us/legal-framework/regulations", "Regulations"),
    ("https://website.rbi.org.in/web/rbi/about-us/legal-framework/schemes", "Schemes"),
    ("https://website.rbi.org.in/web/rbi/speeches", "Speeches"),
    ("https://website.rbi.org.in/web/rbi/interviews", "Interviews and Media Interactions"),
    ("https://website.rbi.org.in/web/rbi/publications/reports/reports_list", "Reports"),
    ("https://website.rbi.org.in/web/rbi/publications/rbi-bulletin", "Bulletin"),
    ("https://website.rbi.org.in/web/rbi/publications/reports/financial_stability_reports", "Reports"),
    ("https://website.rbi.org.in/web/rbi/publications/chapters?category=24927745", "Report on Currency and Finance"),
    ("https://website.rbi.org.in/web/rbi/publications/articles?category=24927873", "Monetary Policy Report"),
]

RBI_SELECTORS = ListingSelectors(
    rows="div.notifications-row-wrapper>div>div",
    link="a.mtm_list_item_heading",
    date="div.notification-date>span",
    date_format="%b %d, %Y",
    title="span.mtm_list_item_heading",
    pdf_link="a.matomo_download",
    snippet="div.notifications-description p",
    content="div.Notification-content-wrap",
)

SNIPPET_RE = re.compile(
    r"(RBI[/A-Z]+\d{4}-\d{2,4}/\d*)(.+\d{4}-\d{2,4}[ ]*)"
    r"((January|February|March|April|May|June|July|August|September|October|November|December)[\d ]+,[\d ]+)"
    r"(.+)(Madam|Madam[ ]*/[ ]*Dear Sir|Dear Sir/|Dear Sir /|Madam / Dear Sir|Madam / Sir|$)"
)

DEFAULT_CLASSIFICATION = {
    "channel": "other",
    "customer_type": "other",
    "function": "other",
    "market_type": "other",
    "occupation": "other",
    "product_type": "other",
    "risk_type": "other",
    "doc_type": "regulatory-notification",
}

RBI_DATA_PROC_FLAGS = (
    DATA_PROC_CLASSIFY_INDUSTRY | DATA_PROC_CLASSIFY_MARKET | DATA_PROC_CLASSIFY_PRODUCT
    | DATA_PROC_EXTRACT_NAME_ENTITY | DATA_PROC_SUMMARIZE | DATA_PROC_EXTRACT_ACTIONS
)


def parse_snippet(doc: Document, snippet: str) -> None:
    """Fill unique_id and recipients from a notification snippet, if it matches."""
    m = SNIPPET_RE.search(" ".join(snippet.split()))
    if not m:
        return
    doc.unique_id = " ".join(m.group(2).split())
    doc.recipients = m.group(5).strip()


def extract_rbi_row(row, listing_url: str, selectors: ListingSelectors) -> Optional[Document]:
    doc = extract_doc_from_row(row, listing_url, selectors)
    if doc is None:
        return None
    doc.classification = dict(DEFAULT_CLASSIFICATION)
    if doc.referrer_text:
        parse_snippet(doc, doc.referrer_text)
    return doc


class RbiRetriever(HtmlListingRetriever):
    name = PLUGIN_NAME
    publisher = PUBLISHER_NAME
    base_url = BASE_URL
    sections = RBI_SECTIONS
    selectors = RBI_SELECTORS

    def __init__(self, options, app_config):
        super().__init__(options, app_config, row_extractor=extract_rbi_row)

    def custom_processing(self, doc: Document) -> None:
        super().custom_processing(doc)
        doc.data_proc_flags = RBI_DATA_PROC_FLAGS
        if len(doc.recipients) > 2:
            doc.recipients = clean_recipients(doc.recipients)
