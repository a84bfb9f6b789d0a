"""
Census assistant data.

Each `Census` is one national enumeration: the GEDCOM date it was taken and
the place it covers. Options are offered per place (England, Scotland, Wales,
United States, Canada) so an editor adding a `CENS` fact can pick one.

`label` is the first component of the place plus the year of the census date
("England 1881"). Note that the year is taken from the census date itself:
the 1851 Canadian census was enumerated in January 1852.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class Census:
    date: str
    place: str

    @property
    def year(self) -> int:
        return int(self.date.split()[-1])

    @property
    def census(self) -> str:
        """Identifier such as `CensusOfEngland1881` (country and nominal year)."""
        return "CensusOf" + self.place.split(",")[0].replace(" ", "") + self.nominal_year

    @property
    def nominal_year(self) -> str:
        # Censuses are named after their round year even when taken later.
        year = self.year
        return str(year - 1 if year % 10 == 2 and year < 1900 else year)

    @property
    def label(self) -> str:
        return f"{self.place.split(',')[0].strip()} {self.year}"

    def as_dict(self) -> dict:
        data = asdict(self)
        data.update(census=self.census, year=self.year, label=self.label)
        return data


def _series(place: str, dates: Iterable[str]) -> tuple[Census, ...]:
    return tuple(Census(date=date, place=place) for date in dates)


_UK_DATES = (
    "06 JUN 1841",
    "30 MAR 1851",
    "07 APR 1861",
    "02 APR 1871",
    "03 APR 1881",
    "05 APR 1891",
    "31 MAR 1901",
    "02 APR 1911",
    "19 JUN 1921",
)

CENSUS_PLACES: dict[str, tuple[Census, ...]] = {
    "England": _series("England", _UK_DATES + ("29 SEP 1939",)),
    "Scotland": _series("Scotland", _UK_DATES),
    "Wales": _series("Wales", _UK_DATES + ("29 SEP 1939",)),
    "United States": _series(
        "United States",
        (
            "02 AUG 1790",
            "04 AUG 1800",
            "06 AUG 1810",
            "07 AUG 1820",
            "01 JUN 1830",
            "01 JUN 1840",
            "01 JUN 1850",
            "01 JUN 1860",
            "01 JUN 1870",
            "01 JUN 1880",
            "02 JUN 1890",
            "01 JUN 1900",
            "15 APR 1910",
            "01 JAN 1920",
            "01 APR 1930",
            "01 APR 1940",
            "01 APR 1950",
        ),
    ),
    "Canada": _series(
        "Canada",
        (
            "12 JAN 1852",
            "14 JAN 1861",
            "02 APR 1871",
            "04 APR 1881",
            "06 APR 1891",
            "31 MAR 1901",
            "01 JUN 1911",
            "01 JUN 1921",
            "01 JUN 1931",
        ),
    ),
}


def census_options(place: Optional[str] = None) -> list[dict]:
    """
    Census options grouped by place.

    `place` filters case-insensitively on the place name; an unknown place
    yields an empty list.
    """
    groups = []
    for name, censuses in CENSUS_PLACES.items():
        if place and name.lower() != place.strip().lower():
            continue
        groups.append({"place": name, "censuses": [c.as_dict() for c in censuses]})
    return groups
