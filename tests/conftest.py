import pytest

from newslookout.config import AppConfig
from newslookout.pipeline.context import Document


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        data_dir=str(tmp_path),
        completed_urls_datafile=str(tmp_path / "urls.db"),
        show_progress=False,
        retry_count=1,
        retry_wait_fixed_sec=0,
    )


@pytest.fixture
def make_doc():
    def _make(url="https://news.example/a/story.html", **kwargs):
        kwargs.setdefault("module", "mod_test")
        kwargs.setdefault("plugin_name", "mod_test")
        kwargs.setdefault("section_name", "news")
        kwargs.setdefault("title", "A story")
        kwargs.setdefault("publish_date_ms", 0)
        return Document(url=url, **kwargs)
    return _make
