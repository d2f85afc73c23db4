"""Flatten downloaded election returns into a CSV table.

Walks a mirror produced by the crawler and emits one row per ``RECORD.*.json``
file: the hierarchy path (region down to precinct), the precinct code, and the
votes of every candidate in one national contest. Listing (``_INFO``) and
sentinel (``MISSING``) files are ignored.
"""

import csv
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO, Tuple

from ermirror.services.crawl.locator import LEVELS
from ermirror.services.crawl.pipeline import ARTIFACT_PREFIXES

logger = logging.getLogger(__name__)

RECORD_FILE_PREFIX = ARTIFACT_PREFIXES["record"] + "."
LEVEL_COLUMNS = [level.lower().replace("/", "_") for level in LEVELS]


def iter_record_files(data_dir: str) -> Iterator[Tuple[List[str], Path]]:
    """Yield (hierarchy components, file path) for each record in the mirror, sorted."""
    root = Path(data_dir)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if name.startswith(RECORD_FILE_PREFIX) and name.endswith(".json"):
                rel = Path(dirpath).relative_to(root)
                yield list(rel.parts), Path(dirpath) / name


def record_code(path: Path) -> str:
    return path.name[len(RECORD_FILE_PREFIX):-len(".json")]


def contest_votes(payload: Any, contest_index: int = 0) -> Optional[Dict[str, Any]]:
    """Map candidate name -> votes for one national contest, or None if it is absent.

    Records are remote data; any level of the expected nesting that has the
    wrong shape counts as an absent contest.
    """
    if not isinstance(payload, dict):
        return None
    national = payload.get("national")
    if not isinstance(national, list) or not (0 <= contest_index < len(national)):
        return None
    contest = national[contest_index]
    if not isinstance(contest, dict):
        return None
    wrapper = contest.get("candidates")
    candidates = wrapper.get("candidates") if isinstance(wrapper, dict) else None
    if not isinstance(candidates, list):
        return None
    return {
        c["name"]: c.get("votes")
        for c in candidates
        if isinstance(c, dict) and isinstance(c.get("name"), str) and c["name"]
    }


def _load(path: Path) -> Optional[Dict[str, Any]]:
    """Parsed record file, or None (with a warning) when it cannot be read."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("skipping %s: unreadable record (%s)", path, exc)
        return None


def collect_candidates(paths: Iterable[Path], contest_index: int = 0) -> List[str]:
    names = set()
    for path in paths:
        payload = _load(path)
        if payload is None:
            continue
        votes = contest_votes(payload, contest_index)
        if votes:
            names.update(votes)
    return sorted(names)


def record_to_row(
    components: List[str],
    code: str,
    payload: Dict[str, Any],
    candidates: List[str],
    contest_index: int = 0,
) -> Optional[List[Any]]:
    votes = contest_votes(payload, contest_index)
    if votes is None:
        return None
    # Overseas branches can be shallower; pad so columns stay aligned
    levels = (list(components) + [""] * len(LEVEL_COLUMNS))[: len(LEVEL_COLUMNS)]
    return levels + [code] + [votes.get(name, "") for name in candidates]


def export_csv(
    data_dir: str,
    out: TextIO,
    *,
    contest_index: int = 0,
    candidates: Optional[List[str]] = None,
) -> int:
    """Write the CSV for ``data_dir`` to ``out``. Returns the number of data rows."""
    records = list(iter_record_files(data_dir))
    if candidates is None:
        candidates = collect_candidates((p for _, p in records), contest_index)

    writer = csv.writer(out)
    writer.writerow(LEVEL_COLUMNS + ["code"] + list(candidates))
    rows = 0
    for components, path in records:
        payload = _load(path)
        if payload is None:
            continue
        row = record_to_row(components, record_code(path), payload, candidates, contest_index)
        if row is None:
            logger.warning("skipping %s: no national contest #%d", path, contest_index)
            continue
        writer.writerow(row)
        rows += 1
    return rows
