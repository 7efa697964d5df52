import pytest

from newslookout.config import AppConfig, PluginSpec
from newslookout.errors import ChannelClosed
from newslookout.pipeline.build import instantiate_stages, order_processors, run_stage_protected
from newslookout.pipeline.channel import channel
from newslookout.stages.persist import PersistData
from newslookout.stages.split_text import SplitText


def _spec(name, priority, position, ptype="data_processor", enabled=True):
    return PluginSpec(name=name, type=ptype, enabled=enabled, priority=priority, position=position)


def test_order_processors_by_priority():
    specs = [_spec("a", 10, 0), _spec("b", -20, 1), _spec("c", 2, 2)]
    assert [s.priority for s in order_processors(specs)] == [-20, 2, 10]


def test_order_processors_ties_keep_config_order():
    specs = [_spec("late", 5, 3), _spec("first", 5, 0), _spec("early", 1, 2), _spec("second", 5, 1)]
    assert [s.name for s in order_processors(specs)] == ["early", "first", "second", "late"]


def test_instantiate_stages_skips_unknown_and_disabled(tmp_path):
    cfg = AppConfig(data_dir=str(tmp_path), plugins=[
        _spec("mod_persist_data", 99, 0),
        _spec("mod_not_there", 1, 1),
        _spec("split_text", 1, 2),
        _spec("mod_cmdline", 5, 3, enabled=False),
        _spec("mod_no_such_retriever", 1, 4, ptype="retriever"),
        _spec("mod_offline_docs", 1, 5, ptype="retriever"),
    ])
    retrievers, processors = instantiate_stages(cfg)
    assert [r.name for r in retrievers] == ["mod_offline_docs"]
    assert [type(p) for p in processors] == [SplitText, PersistData]


def test_run_stage_protected_closes_sender_on_error():
    tx, rx = channel()
    up_tx, up_rx = channel()

    def failing(*args):
        raise RuntimeError("stage failed")

    run_stage_protected("failing", failing, tx, receiver=up_rx)
    assert tx.closed
    assert list(rx) == []
    # upstream producers are told to stop
    with pytest.raises(ChannelClosed):
        up_tx.send(1)


def test_run_stage_protected_passes_arguments():
    tx, rx = channel()
    seen = []
    run_stage_protected("ok", lambda a, b: seen.append((a, b)), tx, 1, 2)
    assert seen == [(1, 2)]
    assert tx.closed
