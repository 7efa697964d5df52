"""newslookout

Batch ingestion pipeline for news and regulatory documents.

Public API surface:
- newslookout.cli.main : CLI entrypoint
- newslookout.pipeline.build.start_pipeline : run the pipeline once
- newslookout.sources : add/extend retrievers
- newslookout.stages : add/extend data processors
- newslookout.checkpoints.store.CompletionStore : completed URL records
"""
__all__ = ["__version__"]
__version__ = "0.7.0"
