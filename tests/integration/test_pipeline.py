import json
import sqlite3

import pytest

from newslookout.checkpoints.store import CompletionStore
from newslookout.config import PluginSpec
from newslookout.pipeline.build import start_pipeline
from newslookout.pipeline.context import Document
from newslookout.sources.base import Retriever
from newslookout.sources.registry import register_retriever, unregister_retriever
from newslookout.stages.base import Processor
from newslookout.stages.registry import register_processor, unregister_processor

FAKE_URLS = ["https://news.example/2024/first-story.html", "https://news.example/2024/second-story.html"]


class FakeRetriever(Retriever):
    name = "mod_fake"
    urls = FAKE_URLS

    def retrieve(self):
        for i, url in enumerate(self.urls):
            if not self.claim(url):
                continue
            yield Document(
                module=self.name,
                plugin_name=self.name,
                section_name="world",
                url=url,
                title=f"Story {i}",
                text="one\n\ntwo\n\nthree\n\nfour",
            )


class ManyRetriever(FakeRetriever):
    name = "mod_many"
    urls = [f"https://news.example/item/{i}" for i in range(5)]


class CrashingProcessor(Processor):
    name = "mod_crash"

    def run(self, receiver, sender):
        raise RuntimeError("processor thread died")

    def process(self, doc):
        return doc


class RecordingStore(CompletionStore):
    def __init__(self, path):
        super().__init__(path)
        self.batches = []

    def append_batch(self, records):
        records = list(records)
        self.batches.append(len(records))
        return super().append_batch(records)


@pytest.fixture(autouse=True)
def fake_plugins():
    register_retriever("mod_fake", FakeRetriever)
    register_retriever("mod_many", ManyRetriever)
    register_processor("mod_crash", CrashingProcessor)
    yield
    unregister_retriever("mod_fake")
    unregister_retriever("mod_many")
    unregister_processor("mod_crash")


def _plugins(*entries):
    return [
        PluginSpec(name=name, type=ptype, enabled=True, priority=priority, options=options, position=i)
        for i, (name, ptype, priority, options) in enumerate(entries)
    ]


def _count_rows(path):
    conn = sqlite3.connect(path)
    try:
        return conn.execute("SELECT COUNT(*) FROM completed_urls").fetchone()[0]
    finally:
        conn.close()


def test_end_to_end_dry_run(app_config, tmp_path):
    app_config.plugins = _plugins(
        ("mod_fake", "retriever", 1, {}),
        ("mod_persist_data", "data_processor", 99, {}),
        ("split_text", "data_processor", 1, {"min_word_limit_to_split": 2, "previous_part_overlap": 0}),
    )
    with CompletionStore(app_config.completed_urls_datafile) as store:
        docs = start_pipeline(app_config, store=store)

    assert len(docs) == 2
    files = sorted(tmp_path.glob("mod_fake_world_*.json"))
    assert len(files) == 2
    for path in files:
        data = json.loads(path.read_text(encoding="utf-8"))
        # split_text ran before persistence
        assert [p["id"] for p in data["text_parts"]] == [1, 2]
    assert _count_rows(app_config.completed_urls_datafile) == 2
    assert {d.url for d in docs} == set(FAKE_URLS)
    assert all(d.filename for d in docs)


def test_second_run_skips_completed_urls(app_config):
    app_config.plugins = _plugins(("mod_fake", "retriever", 1, {}))
    with CompletionStore(app_config.completed_urls_datafile) as store:
        assert len(start_pipeline(app_config, store=store)) == 2
    with CompletionStore(app_config.completed_urls_datafile) as store:
        assert start_pipeline(app_config, store=store) == []
    assert _count_rows(app_config.completed_urls_datafile) == 2


def test_every_document_recorded_once_in_batches(app_config):
    app_config.plugins = _plugins(("mod_many", "retriever", 1, {}), ("mod_fake", "retriever", 1, {}))
    store = RecordingStore(app_config.completed_urls_datafile)
    docs = start_pipeline(app_config, store=store, batch_size=3)
    store.close()
    assert len(docs) == 7
    assert store.batches == [3, 3, 1]
    assert _count_rows(app_config.completed_urls_datafile) == 7


def test_exact_multiple_of_batch_size(app_config):
    app_config.plugins = _plugins(("mod_fake", "retriever", 1, {}))
    store = RecordingStore(app_config.completed_urls_datafile)
    start_pipeline(app_config, store=store, batch_size=2)
    store.close()
    assert store.batches == [2]


def test_crashed_processor_does_not_hang_the_pipeline(app_config):
    app_config.plugins = _plugins(
        ("mod_fake", "retriever", 1, {}),
        ("mod_crash", "data_processor", 1, {}),
        ("split_text", "data_processor", 5, {}),
    )
    with CompletionStore(app_config.completed_urls_datafile) as store:
        docs = start_pipeline(app_config, store=store)
    assert docs == []


def test_no_retrievers(app_config):
    app_config.plugins = _plugins(("split_text", "data_processor", 1, {}))
    with CompletionStore(app_config.completed_urls_datafile) as store:
        assert start_pipeline(app_config, store=store) == []


def test_no_processors(app_config):
    app_config.plugins = _plugins(("mod_fake", "retriever", 1, {}))
    with CompletionStore(app_config.completed_urls_datafile) as store:
        docs = start_pipeline(app_config, store=store)
    assert sorted(d.url for d in docs) == sorted(FAKE_URLS)


def test_unwritable_completion_store_does_not_abort_run(app_config, tmp_path):
    blocker = tmp_path / "afile"
    blocker.write_text("not a directory")
    app_config.completed_urls_datafile = str(blocker / "sub" / "urls.db")
    app_config.plugins = _plugins(("mod_fake", "retriever", 1, {}))
    docs = start_pipeline(app_config, batch_size=1)
    assert sorted(d.url for d in docs) == sorted(FAKE_URLS)
