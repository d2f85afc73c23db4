from __future__ import annotations

import contextlib
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
import aiofiles.os

from ermirror.models.area import Absent, AreaDocument, Document, RecordDocument, parse_document
from .base import PersistenceError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# File name prefix per document kind. A directory listing alone tells whether a
# node was listed (_INFO), downloaded (RECORD) or confirmed missing (MISSING).
ARTIFACT_PREFIXES: Dict[str, str] = {
    "area": "_INFO",
    "record": "RECORD",
    "absent": "MISSING",
}


def artifact_name(kind: str, node_code: str) -> str:
    return f"{ARTIFACT_PREFIXES[kind]}.{node_code}.json"


def artifact_path(target_dir: PathLike, kind: str, node_code: str) -> Path:
    return Path(target_dir) / artifact_name(kind, node_code)


async def ensure_dir(path: PathLike) -> None:
    await aiofiles.os.makedirs(path, exist_ok=True)


async def _write_atomic(path: Path, text: str) -> None:
    # Same directory as the target so the rename never crosses filesystems
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(text)
        await aiofiles.os.replace(tmp, path)
    except OSError:
        with contextlib.suppress(OSError):
            await aiofiles.os.remove(tmp)
        raise


async def persist(document: Document, target_dir: PathLike, node_code: str) -> Path:
    """Write ``document`` under ``target_dir`` and return the file path.

    The file name follows the document kind (see ARTIFACT_PREFIXES); Absent is
    written as an empty JSON object. Raises PersistenceError on any disk failure.
    """
    path = artifact_path(target_dir, document.kind, node_code)
    text = json.dumps(document.to_payload(), ensure_ascii=False)
    try:
        await ensure_dir(target_dir)
        await _write_atomic(path, text)
    except OSError as exc:
        raise PersistenceError(f"could not write {path}: {exc}", path=str(path)) from exc
    return path


def _load_cached(kind: str, raw: Any) -> Document:
    if kind == "area":
        doc = parse_document(raw)
        if not isinstance(doc, AreaDocument):
            raise ValueError("cached listing has no 'regions'")
        return doc
    if kind == "record":
        return RecordDocument(payload=raw)
    return Absent()


async def check_cache(target_dir: PathLike, node_code: str) -> Optional[Document]:
    """Return the document a previous run persisted for this node, if readable.

    Listing, record and missing-sentinel files are tried in that order. Any
    read or decode failure counts as not cached; this never raises.
    """
    for kind in ("area", "record", "absent"):
        path = artifact_path(target_dir, kind, node_code)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = json.loads(await f.read())
            return _load_cached(kind, raw)
        except FileNotFoundError:
            continue
        except (OSError, ValueError) as exc:
            logger.debug("ignoring unreadable cache file %s: %s", path, exc)
            continue
    return None
