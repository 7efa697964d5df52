"""Pipeline orchestrator.

Wiring:

    retrievers (N threads) -> intake -> P1 -> P2 -> ... -> Pk -> terminal -> drain

- every enabled retriever runs on its own thread and gets a clone of the
  intake sender
- processors are chained by ascending priority (ties keep config order),
  each on its own thread
- the calling thread drains the terminal channel and records completed URLs
  in batches of `batch_size`, plus a final flush at end-of-stream

Shutdown is by exhaustion: when the last retriever closes its sender the
end-of-stream walks down the chain and the drain loop returns.
"""

from __future__ import annotations
from typing import Any, Callable, List, Optional, Sequence, Tuple
import logging
import sys
import threading
import time

from tqdm import tqdm

from ..checkpoints.store import CompletionStore
from ..config import AppConfig, PluginSpec
from .channel import Receiver, Sender, channel
from .context import Document
from ..sources import registry as retriever_registry
from ..sources.base import Retriever
from ..stages import registry as processor_registry
from ..stages.base import Processor

log = logging.getLogger("newslookout.build")


def order_processors(specs: Sequence[PluginSpec]) -> List[PluginSpec]:
    """Smallest priority first; equal priorities keep their configuration order."""
    return sorted(specs, key=lambda s: (s.priority, s.position))


def run_stage_protected(name: str, target: Callable[..., Any], sender: Sender, *args,
                        receiver: Optional[Receiver] = None) -> None:
    """Thread entry point for a stage.

    Any exception escaping the stage is logged; the stage's sender is always
    closed so downstream stages reach end-of-stream instead of waiting forever.
    If the stage had an upstream receiver it is closed too, so upstream senders
    fail fast instead of queueing documents nobody reads.
    """
    try:
        target(*args)
    except Exception:
        log.exception(f"Stage {name} failed")
        if receiver is not None:
            receiver.close()
    finally:
        sender.close()


def instantiate_stages(app_config: AppConfig) -> Tuple[List[Retriever], List[Processor]]:
    """Create every enabled stage, in chain order for processors.

    Options are validated here, before any thread starts; a ConfigError
    propagates to the caller. Unknown plugin names are logged and skipped.
    """
    retrievers: List[Retriever] = []
    processor_specs: List[PluginSpec] = []
    for spec in app_config.plugins:
        if not spec.enabled:
            log.info(f"Ignoring disabled plugin: {spec.name}")
            continue
        if spec.is_retriever:
            if not retriever_registry.is_registered(spec.name):
                log.error(f"Unknown retriever plugin specified in config file: {spec.name}")
                continue
            retrievers.append(retriever_registry.make_retriever(spec.name, spec.options, app_config))
        else:
            if not processor_registry.is_registered(spec.name):
                log.error(f"Unknown data processing plugin specified in config file: {spec.name}")
                continue
            processor_specs.append(spec)

    processors = [
        processor_registry.make_processor(spec.name, spec.options, app_config)
        for spec in order_processors(processor_specs)
    ]
    return retrievers, processors


def _flush(store: CompletionStore, buffer: List[Document]) -> int:
    if not buffer:
        return 0
    written = store.append_batch([d.completion_record() for d in buffer])
    if written < len(buffer):
        log.error(f"Could not write all {len(buffer)} retrieved urls into database table, wrote {written}.")
    else:
        log.info(f"Wrote {written} rows of the retrieved urls into database table.")
    buffer.clear()
    return written


def start_pipeline(
    app_config: AppConfig,
    retrievers: Optional[List[Retriever]] = None,
    processors: Optional[List[Processor]] = None,
    store: Optional[CompletionStore] = None,
    batch_size: Optional[int] = None,
) -> List[Document]:
    """Run the whole pipeline and return every document that reached the end.

    `retrievers` and `processors` default to the enabled plugins in
    `app_config`; processors passed in are used in the given order.
    """
    if retrievers is None or processors is None:
        cfg_retrievers, cfg_processors = instantiate_stages(app_config)
        retrievers = cfg_retrievers if retrievers is None else retrievers
        processors = cfg_processors if processors is None else processors
    own_store = store is None
    if own_store:
        store = CompletionStore(app_config.completed_urls_datafile)
    batch_size = int(batch_size or app_config.batch_size)
    start = time.time()

    log.info(f"Starting pipeline with {len(retrievers)} retrievers and processors "
             f"{[p.name for p in processors]}")

    threads: List[threading.Thread] = []
    intake_tx, intake_rx = channel()

    upstream = intake_rx
    for proc in processors:
        tx, rx = channel()
        t = threading.Thread(
            target=run_stage_protected,
            args=(proc.name, proc.run, tx, upstream, tx),
            kwargs={"receiver": upstream},
            name=proc.name,
        )
        t.start()
        log.info(f"Launched data processing thread {proc.name}")
        threads.append(t)
        upstream = rx
    terminal = upstream

    for retriever in retrievers:
        tx = intake_tx.clone()
        t = threading.Thread(
            target=run_stage_protected,
            args=(retriever.name, retriever.run, tx, tx, store),
            name=retriever.name,
        )
        t.start()
        log.info(f"Launched retriever thread {retriever.name}")
        threads.append(t)

    # end-of-stream reaches the chain once every retriever has closed its clone
    intake_tx.close()

    processed: List[Document] = []
    buffer: List[Document] = []
    show = bool(app_config.show_progress) and sys.stderr.isatty()
    try:
        with tqdm(desc="documents", unit="doc", disable=not show) as pbar:
            for doc in terminal:
                processed.append(doc)
                buffer.append(doc)
                pbar.update(1)
                if len(buffer) >= batch_size:
                    _flush(store, buffer)
        _flush(store, buffer)
    finally:
        # stages still sending after an aborted drain get ChannelClosed
        terminal.close()
        for t in threads:
            t.join()
            log.debug(f"Thread {t.name} finished")
        if own_store:
            store.close()

    log.info(f"Data pipeline completed processing {len(processed)} documents in {time.time() - start:.1f}s.")
    return processed


def load_and_run_pipeline(app_config: AppConfig) -> List[Document]:
    """Entry point used by the CLI: configured stages, configured store."""
    with CompletionStore(app_config.completed_urls_datafile) as store:
        return start_pipeline(app_config, store=store)
