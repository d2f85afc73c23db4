"""Build remote locators from (code, depth).

The results site serves the hierarchy from four JSON trees:

- ``regions/local/{code}.json`` and ``regions/overseas/{code}.json`` list the
  children of a region, province, city or barangay (depths 0 to 3);
- ``regions/precinct/{code[:2]}/{code}.json`` lists the precincts of a barangay
  (depth 4);
- ``er/{code[:3]}/{code}.json`` is the election return of a precinct (depth 5+).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

DEFAULT_BASE_URL = "https://2025electionresults.comelec.gov.ph/data/"

AREA = "area"
PRECINCT = "precinct"
RECORD = "record"

PRECINCT_PREFIX = 2
RECORD_PREFIX = 3

# Names of the levels below the root listing, by depth - 1
LEVELS: Tuple[str, ...] = (
    "Region",
    "Province/District",
    "City/Municipality",
    "Barangay",
    "Precinct",
)


def level_name(depth: int) -> str:
    if depth <= 0:
        return "Root"
    if depth > len(LEVELS):
        return LEVELS[-1]
    return LEVELS[depth - 1]


@dataclass(frozen=True)
class Templates:
    base_url: str = DEFAULT_BASE_URL

    def _base(self) -> str:
        return self.base_url if self.base_url.endswith("/") else self.base_url + "/"

    def area(self, code: str, overseas: bool) -> str:
        tree = "overseas" if overseas else "local"
        return f"{self._base()}regions/{tree}/{code}.json"

    def precinct(self, code: str) -> str:
        return f"{self._base()}regions/precinct/{code[:PRECINCT_PREFIX]}/{code}.json"

    def record(self, code: str) -> str:
        return f"{self._base()}er/{code[:RECORD_PREFIX]}/{code}.json"


@dataclass(frozen=True)
class Locator:
    url: str
    code: str
    depth: int
    kind: str
    prefix_length: int = 0

    @property
    def is_valid(self) -> bool:
        return bool(self.code) and len(self.code) >= self.prefix_length


def locate(code: str, depth: int, overseas: bool = False, templates: Templates = Templates()) -> Locator:
    """Map a node code and its depth to the URL serving its document.

    Never fails: a code too short for its prefix still yields a Locator, with
    ``is_valid`` False, and the fetcher refuses it.
    """
    if depth <= 3:
        return Locator(url=templates.area(code, overseas), code=code, depth=depth, kind=AREA)
    if depth == 4:
        return Locator(
            url=templates.precinct(code),
            code=code,
            depth=depth,
            kind=PRECINCT,
            prefix_length=PRECINCT_PREFIX,
        )
    return Locator(
        url=templates.record(code),
        code=code,
        depth=depth,
        kind=RECORD,
        prefix_length=RECORD_PREFIX,
    )
