from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AreaNode(BaseModel):
    """One entity of the administrative hierarchy, as listed by its parent."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    code: str
    name: str
    category_code: Optional[str] = Field(None, alias="categoryCode")
    master_code: Optional[str] = Field(None, alias="masterCode")


class AreaDocument(BaseModel):
    """Branch payload: a listing of child nodes."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["area"] = "area"
    regions: List[AreaNode]

    def to_payload(self) -> Dict[str, Any]:
        return {"regions": [r.model_dump(by_alias=True) for r in self.regions]}


class RecordDocument(BaseModel):
    """Leaf payload. The record body is kept as received."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["record"] = "record"
    payload: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return dict(self.payload)


class Absent(BaseModel):
    """A remote resource confirmed missing."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["absent"] = "absent"

    def to_payload(self) -> Dict[str, Any]:
        return {}


Document = Annotated[Union[AreaDocument, RecordDocument, Absent], Field(discriminator="kind")]


def parse_document(raw: Any) -> Union[AreaDocument, RecordDocument]:
    """Decide once whether a decoded JSON body is a branch or a leaf.

    An object carrying a ``regions`` list is an AreaDocument; any other object is
    a RecordDocument. Non-object bodies and a ``regions`` key that is not a list
    raise ValueError (pydantic's ValidationError is a ValueError too).
    """
    if not isinstance(raw, dict):
        raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
    if "regions" in raw:
        regions = raw["regions"]
        if not isinstance(regions, list):
            raise ValueError("'regions' is present but is not a list")
        return AreaDocument(regions=regions)
    return RecordDocument(payload=raw)


def sanitize_name(name: str) -> str:
    """Directory name for a node: path separators replaced, whitespace trimmed."""
    cleaned = (name or "").replace("/", "-").replace("\\", "-").strip()
    if cleaned in (".", ".."):
        return cleaned.replace(".", "_")
    return cleaned


@dataclass(frozen=True)
class CrawlTask:
    node: AreaNode
    depth: int
    parent_path: Path

    @property
    def mirror_path(self) -> Path:
        # Only the unnamed root maps onto the mirror root itself; any other
        # blank name gets a placeholder so its files never land in the parent
        name = sanitize_name(self.node.name)
        if name:
            return self.parent_path / name
        return self.parent_path if self.depth == 0 else self.parent_path / "_"

    def child(self, node: AreaNode) -> "CrawlTask":
        return CrawlTask(node=node, depth=self.depth + 1, parent_path=self.mirror_path)
