import time

import fitz
import pytest
from bs4 import BeautifulSoup

from newslookout.checkpoints.store import CompletionStore
from newslookout.pipeline.channel import channel
from newslookout.pipeline.context import DATA_PROC_SUMMARIZE, Document
from newslookout.sources import html_listing
from newslookout.sources.base import Retriever
from newslookout.sources.html_listing import listing_page_url
from newslookout.sources.offline_docs import OfflineDocsRetriever
from newslookout.sources.rbi import RBI_SELECTORS, RbiRetriever, extract_rbi_row, parse_snippet
from newslookout.sources.registry import (
    is_registered,
    list_retrievers,
    make_retriever,
    register_retriever,
    unregister_retriever,
)
from newslookout.stages.persist import write_json_file

LISTING_URL = "https://website.rbi.org.in/web/rbi/notifications/rbi-circulars"
DOC_URL = "https://website.rbi.org.in/web/rbi/-/notifications/limits-on-exposure"

LISTING_HTML = """
<html><body>
<div class="notifications-row-wrapper"><div>
  <div>
    <div class="notification-date"><span>Apr 02, 2024</span></div>
    <a class="mtm_list_item_heading" href="/web/rbi/-/notifications/limits-on-exposure">
      <span class="mtm_list_item_heading">Limits on Exposure</span></a>
    <div class="notifications-description"><p>RBI/2024-25/12 DOR.STR.REC.5/21.04.048/2024-25
      April 2, 2024 All Commercial Banks Madam / Dear Sir,</p></div>
    <a class="matomo_download" href="/documents/limits.pdf">PDF</a>
  </div>
  <div>
    <div class="notification-date"><span>Apr 01, 2024</span></div>
    <a class="mtm_list_item_heading" href="javascript:void(0)">Broken row</a>
  </div>
</div></div>
</body></html>
"""

DOC_HTML = """
<html><body><nav>menu</nav>
<div class="Notification-content-wrap"><p>Banks are advised as follows.</p><p>Second paragraph.</p></div>
</body></html>
"""


def _first_row():
    soup = BeautifulSoup(LISTING_HTML, "html.parser")
    return soup.select(RBI_SELECTORS.rows)[0]


def test_listing_page_url():
    assert listing_page_url(LISTING_URL, 10, 2) == f"{LISTING_URL}?delta=10&start=2"
    assert listing_page_url(f"{LISTING_URL}?category=1", 5, 1) == f"{LISTING_URL}?category=1&delta=5&start=1"


def test_extract_rbi_row():
    doc = extract_rbi_row(_first_row(), LISTING_URL, RBI_SELECTORS)
    assert doc.url == "/web/rbi/-/notifications/limits-on-exposure"
    assert doc.title == "Limits on Exposure"
    assert doc.publish_date == "2024-04-02"
    assert doc.pdf_url == "/documents/limits.pdf"
    assert doc.links_inward == [LISTING_URL]
    assert doc.unique_id == "DOR.STR.REC.5/21.04.048/2024-25"
    assert doc.recipients.startswith("All Commercial Banks")
    assert doc.classification["doc_type"] == "regulatory-notification"


def test_parse_snippet_without_match_leaves_fields():
    doc = Document()
    parse_snippet(doc, "Press release without a circular number")
    assert doc.unique_id == ""
    assert doc.recipients == ""


@pytest.fixture
def fake_site(monkeypatch):
    fetched = []

    def fake_get(session, url, params):
        fetched.append(url)
        return LISTING_HTML if "delta=" in url else DOC_HTML

    monkeypatch.setattr(html_listing, "http_get", fake_get)
    monkeypatch.setattr(html_listing, "http_get_binary", lambda session, url, params: b"")
    return fetched


def _rbi(app_config):
    retriever = RbiRetriever({"maxpages": 1}, app_config)
    retriever.sections = [(LISTING_URL, "Circular")]
    return retriever


def test_rbi_retrieve(app_config, fake_site):
    docs = list(_rbi(app_config).retrieve())
    assert len(docs) == 1
    doc = docs[0]
    assert doc.url == DOC_URL
    assert doc.pdf_url == "https://website.rbi.org.in/documents/limits.pdf"
    assert doc.module == doc.plugin_name == "mod_en_in_rbi"
    assert doc.section_name == "Circular"
    assert doc.source_author == "Reserve Bank of India"
    assert doc.recipients == "All Commercial Banks"
    assert doc.has_flag(DATA_PROC_SUMMARIZE)
    assert doc.text == "Banks are advised as follows.\n\nSecond paragraph."
    assert "menu" not in doc.html_content
    assert doc.filename.startswith(app_config.data_dir)
    assert fake_site[0] == f"{LISTING_URL}?delta=10&start=1"


def test_rbi_run_skips_completed_urls(app_config, fake_site):
    store = CompletionStore(app_config.completed_urls_datafile)
    done = Document(url=DOC_URL, plugin_name="mod_en_in_rbi")
    assert store.append_batch([done.completion_record()]) == 1
    tx, rx = channel()
    assert _rbi(app_config).run(tx, store) == 0
    assert list(rx) == []
    # the completed document page is never fetched
    assert DOC_URL not in fake_site
    store.close()


def test_rbi_run_sends_new_urls(app_config, fake_site):
    store = CompletionStore(app_config.completed_urls_datafile)
    tx, rx = channel()
    assert _rbi(app_config).run(tx, store) == 1
    assert [d.url for d in rx] == [DOC_URL]


class ListRetriever(Retriever):
    name = "mod_list"

    def __init__(self, options, app_config, urls=()):
        super().__init__(options, app_config)
        self.urls = list(urls)

    def retrieve(self):
        for url in self.urls:
            if self.claim(url):
                yield Document(url=url, plugin_name=self.name)
        yield Document(url="", title="no url")


def test_retriever_run_drops_repeats_and_missing_urls(app_config):
    retriever = ListRetriever({}, app_config, urls=["u1", "u2", "u1"])
    tx, rx = channel()
    assert retriever.run(tx, CompletionStore(app_config.completed_urls_datafile)) == 2
    assert [d.url for d in rx] == ["u1", "u2"]
    assert tx.closed


def test_offline_json_docs(app_config, tmp_path):
    folder = tmp_path / "archive"
    recent = Document(url="https://x.example/recent", module="mod_a", plugin_name="mod_a",
                      section_name="s", title="Recent")
    old = Document(url="https://x.example/old", module="mod_a", plugin_name="mod_a",
                   section_name="s", title="Old", publish_date_ms=0)
    write_json_file(recent, str(folder))
    write_json_file(old, str(folder))
    retriever = OfflineDocsRetriever({"folder_name": str(folder), "published_in_past_days": 30}, app_config)
    docs = list(retriever.retrieve())
    assert [d.url for d in docs] == ["https://x.example/recent"]
    assert docs[0].plugin_name == "mod_offline_docs"
    assert docs[0].module == "mod_a"
    assert docs[0].filename.endswith(".json")


def test_offline_skips_unreadable_json(app_config, tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    retriever = OfflineDocsRetriever({}, app_config)
    assert list(retriever.retrieve()) == []


def test_offline_missing_folder(app_config, tmp_path):
    retriever = OfflineDocsRetriever({"folder_name": str(tmp_path / "nope")}, app_config)
    assert list(retriever.retrieve()) == []


def test_offline_pdf_docs(app_config, tmp_path):
    pdf_path = tmp_path / "report.pdf"
    pdf = fitz.open()
    page = pdf.new_page()
    page.insert_text((72, 72), "Quarterly report on banking")
    pdf.save(str(pdf_path))
    pdf.close()
    retriever = OfflineDocsRetriever({"file_extension": "pdf"}, app_config)
    docs = list(retriever.retrieve())
    assert len(docs) == 1
    assert "Quarterly report" in docs[0].text
    assert docs[0].title == "report"
    assert docs[0].url.startswith("file://")
    assert abs(docs[0].publish_date_ms - time.time() * 1000) < 86_400_000


def test_retriever_registry(app_config):
    assert list_retrievers()["mod_en_in_rbi"] == "static"
    assert isinstance(make_retriever("mod_offline_docs", {}, app_config), OfflineDocsRetriever)
    assert isinstance(make_retriever("mod_en_in_rbi", {"maxpages": 3}, app_config), RbiRetriever)
    with pytest.raises(ValueError, match="Available"):
        make_retriever("mod_missing", {}, app_config)
    register_retriever("mod_list", lambda options, cfg: ListRetriever(options, cfg))
    try:
        assert is_registered("mod_list")
    finally:
        unregister_retriever("mod_list")
    assert not is_registered("mod_list")
