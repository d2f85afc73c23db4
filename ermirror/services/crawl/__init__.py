"""Resumable mirror of the election results hierarchy.

Structure:
- base.py: outcome enum and error taxonomy
- locator.py: (code, depth) -> remote URL
- retry.py: retry schedule (retry count intersected with exponential delay)
- fetcher.py: httpx fetch with status classification and retries
- pipeline.py: atomic JSON persistence + resume cache check
- orchestrator.py: recursive traversal under a global concurrency ceiling
- runner.py: tiny CLI entrypoint for manual runs

The mirror on disk is the only state: re-running a crawl skips every node that
already has a listing, record or MISSING file.
"""

__all__ = [
    "base",
    "fetcher",
    "locator",
    "orchestrator",
    "pipeline",
    "retry",
]
