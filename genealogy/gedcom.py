from __future__ import annotations

"""
GEDCOM import and export for one tree.

Scope
-----
- `parse()` reads GEDCOM text with ged4py's `GedcomReader` and returns the
  level-0 records (ged4py folds `CONT`/`CONC` continuation lines into their
  parent's value).
- `import_gedcom()` loads INDI, FAM, SOUR and OBJE records into a tree.
- `export_gedcom()` writes the tree back as GEDCOM 5.5.1 (UTF-8).

Import contract
---------------
- Two passes: individuals, sources and media objects first, then families
  (which reference individuals by xref) and INDI -> OBJE media links.
- Validation is delegated to the record serializers so API and import share
  one rule set. Invalid records are skipped and reported.
- Record cap: `IMPORT_MAX_RECORDS` (default 200,000) level-0 records; the
  rest of the file is ignored and `truncated` is set.
- File cap: `MAX_IMPORT_BYTES`; `read_upload()` raises `ValueError("File too
  large ...")`, which the view maps to HTTP 413.
- A file ged4py cannot read (bad line syntax, broken levels) is rejected as a
  whole with `GedcomError`.

Transactions & dry runs
-----------------------
- Each import runs in one transaction. With `dry_run=True` we call
  `transaction.set_rollback(True)` at the end so every write is discarded
  while the counts and errors are still computed.

Error reporting contract
------------------------
Error dicts use the keys: line, xref, code, error (text or serializer error
structure). `line` is the line the level-0 record starts on.
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.utils import timezone
from ged4py.model import Record
from ged4py.parser import GedcomReader, ParserError

from .models import Family, Individual, MediaObject, Source, Tree
from .serializers import (
    FamilySerializer,
    IndividualSerializer,
    MediaObjectSerializer,
    SourceSerializer,
)

logger = logging.getLogger(__name__)

GEDCOM_VERSION = "5.5.1"

HEAD_RE = re.compile(r"^\s*0\s+HEAD\b")

# Longest value written on one line before continuing with CONC.
MAX_VALUE_LENGTH = 200


class GedcomError(ValueError):
    """The upload is not a readable GEDCOM file."""


@dataclass
class GedcomRecord:
    """A level-0 ged4py record plus where it sits in the source text."""
    record: Record
    line: int
    raw: str

    @property
    def tag(self) -> str:
        return self.record.tag

    @property
    def xref(self) -> str:
        return (self.record.xref_id or "").strip("@")

    def value_of(self, path: str) -> str:
        """Text of the first sub-record along a ``/`` path, e.g. ``"BIRT/DATE"``."""
        return _text(self.record.sub_tag(path, follow=False))

    def all(self, tag: str) -> List[Record]:
        return list(self.record.sub_tags(tag, follow=False))


@dataclass
class ImportResult:
    """Result envelope returned by `import_gedcom`.

    Attributes:
        counts: created records per GEDCOM tag (INDI, FAM, SOUR, OBJE).
        errors: per-record error objects (line, xref, code, details).
        dry_run: nothing was kept.
        replaced: the tree was emptied before importing.
        truncated: the record cap stopped the import early.
    """
    counts: Dict[str, int]
    errors: List[Dict[str, Any]]
    dry_run: bool = False
    replaced: bool = False
    truncated: bool = False


# ---------------------------------------------------------------------------
# Reading & parsing
# ---------------------------------------------------------------------------

def read_upload(upload: UploadedFile) -> str:
    """
    Return the upload as text, refusing files above `MAX_IMPORT_BYTES`.

    NOTE:
        UTF-8 (with or without BOM) is expected; files that do not decode
        fall back to Latin-1 so legacy ANSI exports still load.
    """
    max_bytes = int(getattr(settings, "MAX_IMPORT_BYTES", 20_000_000))
    if upload.size and upload.size > max_bytes:
        raise ValueError(f"File too large (>{max_bytes} bytes).")
    data = upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValueError(f"File too large (>{max_bytes} bytes).")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _text(record: Optional[Record]) -> str:
    """
    A sub-record's value as GEDCOM text.

    ged4py hands back NAME values as ``(given, surname, suffix)`` tuples and
    DATE values as date objects; both are turned back into plain text.
    """
    if record is None or record.value is None:
        return ""
    value = record.value
    if isinstance(value, tuple):
        given, surname, suffix = (tuple(value) + ("", "", ""))[:3]
        parts = [given, f"/{surname}/" if surname else "", suffix]
        return " ".join(part for part in parts if part)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value)


def _pointer(record: Optional[Record]) -> str:
    """``@I1@`` -> ``I1``; a sub-record that is not a pointer -> ""."""
    if record is None:
        return ""
    value = record.value
    if isinstance(value, Record):
        value = value.xref_id
    if not isinstance(value, str):
        return ""
    value = value.strip()
    if len(value) > 2 and value.startswith("@") and value.endswith("@"):
        return value[1:-1]
    return ""


def parse(text: str) -> List[GedcomRecord]:
    """
    Parse GEDCOM text into level-0 records.

    Raises:
        GedcomError: when the first record is not HEAD, or ged4py rejects the
            file (malformed lines, level jumps).
    """
    first = next((line for line in text.splitlines() if line.strip()), "")
    if not HEAD_RE.match(first):
        raise GedcomError("Not a GEDCOM file: the first record must be HEAD.")

    # The text is already decoded, so ged4py always reads UTF-8.
    data = text.encode("utf-8")
    try:
        reader = GedcomReader(io.BytesIO(data), encoding="utf-8")
        records = list(reader.records0())
    except ParserError as exc:
        raise GedcomError(f"Malformed GEDCOM: {exc}") from exc

    offsets = [record.offset for record in records] + [len(data)]
    result = []
    for index, record in enumerate(records):
        start, end = offsets[index], offsets[index + 1]
        result.append(GedcomRecord(
            record=record,
            line=data.count(b"\n", 0, start) + 1,
            raw=data[start:end].decode("utf-8").rstrip(),
        ))
    return result


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _individual_data(node: GedcomRecord) -> Dict[str, Any]:
    names = node.all("NAME")
    name = _text(names[0]) if names else ""
    married = ""
    for extra in names[1:]:
        if _text(extra.sub_tag("TYPE", follow=False)).lower() == "married":
            married = _text(extra)
            break
    if not married and names:
        married = _text(names[0].sub_tag("_MARNM", follow=False))
    sex = node.value_of("SEX").upper()[:1]
    return {
        "name": name,
        "sex": sex if sex in ("M", "F") else "U",
        "married_name": married,
        "birth_date": node.value_of("BIRT/DATE"),
        "birth_place": node.value_of("BIRT/PLAC"),
        "death_date": node.value_of("DEAT/DATE"),
        "death_place": node.value_of("DEAT/PLAC"),
        "notes": "\n".join(_text(note) for note in node.all("NOTE") if not _pointer(note)),
    }


def _source_data(node: GedcomRecord) -> Dict[str, Any]:
    return {
        "title": node.value_of("TITL"),
        "author": node.value_of("AUTH"),
        "publication": node.value_of("PUBL"),
        "text": node.value_of("TEXT"),
    }


def _media_data(node: GedcomRecord) -> Dict[str, Any]:
    form = node.value_of("FILE/FORM") or node.value_of("FORM")
    return {
        "file_reference": node.value_of("FILE"),
        "title": node.value_of("FILE/TITL") or node.value_of("TITL"),
        "mime_type": _MIME_BY_FORM.get(form.lower(), ""),
    }


_MIME_BY_FORM = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "bmp": "image/bmp",
    "pdf": "application/pdf",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "mp4": "video/mp4",
}

# Submitter records carry no genealogy.
_SILENTLY_SKIPPED = ("SUBM", "SUBN")

_IMPORTERS = {
    "INDI": (IndividualSerializer, _individual_data),
    "SOUR": (SourceSerializer, _source_data),
    "OBJE": (MediaObjectSerializer, _media_data),
}


def clear_tree(tree: Tree) -> None:
    """Delete every record of `tree` (families first, they point at individuals)."""
    for model in (Family, MediaObject, Individual, Source):
        model.objects.filter(tree=tree).delete()


def _save(serializer_class, data, node: GedcomRecord, tree: Tree, errors: List[Dict[str, Any]]):
    if not node.xref:
        errors.append({"line": node.line, "xref": "", "code": "missing_xref", "error": f"{node.tag} without xref"})
        return None
    model = serializer_class.Meta.model
    if len(node.xref) > 20 or model.objects.filter(tree=tree, xref=node.xref).exists():
        errors.append({"line": node.line, "xref": node.xref, "code": "duplicate_xref",
                       "error": "A record with this xref already exists in the tree."})
        return None
    serializer = serializer_class(data=data, context={"tree": tree})
    if not serializer.is_valid():
        errors.append({"line": node.line, "xref": node.xref, "code": "invalid", "error": serializer.errors})
        return None
    return serializer.save(tree=tree, xref=node.xref, gedcom=node.raw)


def import_gedcom(tree: Tree, text: str, *, dry_run: bool = False, replace: bool = False) -> ImportResult:
    """
    Import GEDCOM `text` into `tree`.

    Raises:
        GedcomError: when the text has no HEAD record or cannot be parsed.
    """
    errors: List[Dict[str, Any]] = []
    records = parse(text)

    max_records = int(getattr(settings, "IMPORT_MAX_RECORDS", 200_000))
    body = [r for r in records if r.tag not in ("HEAD", "TRLR")]
    truncated = 0 < max_records < len(body)
    if truncated:
        body = body[:max_records]

    counts = {"INDI": 0, "FAM": 0, "SOUR": 0, "OBJE": 0}
    with transaction.atomic():
        if replace:
            clear_tree(tree)

        # Pass 1: records that reference nothing.
        for node in body:
            if node.tag in _IMPORTERS:
                serializer_class, extract = _IMPORTERS[node.tag]
                if _save(serializer_class, extract(node), node, tree, errors) is not None:
                    counts[node.tag] += 1

        people = dict(Individual.objects.filter(tree=tree).values_list("xref", "pk"))

        # Pass 2: families and media links.
        for node in body:
            if node.tag == "FAM":
                members = node.all("HUSB") + node.all("WIFE") + node.all("CHIL")
                data = {
                    "husband": people.get(_pointer(node.record.sub_tag("HUSB", follow=False))),
                    "wife": people.get(_pointer(node.record.sub_tag("WIFE", follow=False))),
                    "children": [people[x] for x in (_pointer(c) for c in node.all("CHIL")) if x in people],
                    "marriage_date": node.value_of("MARR/DATE"),
                    "marriage_place": node.value_of("MARR/PLAC"),
                }
                missing = [_text(m) for m in members if _pointer(m) not in people]
                if missing:
                    errors.append({"line": node.line, "xref": node.xref, "code": "unknown_individual",
                                   "error": f"Unknown individuals: {', '.join(missing)}"})
                if _save(FamilySerializer, data, node, tree, errors) is not None:
                    counts["FAM"] += 1
            elif node.tag == "INDI" and node.xref in people:
                media_xrefs = [x for x in (_pointer(o) for o in node.all("OBJE")) if x]
                for media in MediaObject.objects.filter(tree=tree, xref__in=media_xrefs):
                    media.individuals.add(people[node.xref])
            elif node.tag not in _IMPORTERS and node.tag not in _SILENTLY_SKIPPED:
                errors.append({"line": node.line, "xref": node.xref, "code": "unsupported_record",
                               "error": f"{node.tag} records are not imported."})

        if dry_run:
            transaction.set_rollback(True)

    logger.info(
        "GEDCOM import into %s: %s (errors=%d dry_run=%s replace=%s truncated=%s)",
        tree.name, counts, len(errors), dry_run, replace, truncated,
    )
    return ImportResult(counts=counts, errors=errors, dry_run=dry_run, replaced=replace, truncated=truncated)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def _lines(level: int, tag: str, value: str = "", xref: str = "") -> Iterator[str]:
    """
    One GEDCOM line, with `CONT` for embedded newlines and `CONC` for long text.
    """
    head = f"{level} @{xref}@ {tag}" if xref else f"{level} {tag}"
    for index, part in enumerate(str(value).split("\n")):
        chunks = [part[i:i + MAX_VALUE_LENGTH] for i in range(0, len(part), MAX_VALUE_LENGTH)] or [""]
        for position, chunk in enumerate(chunks):
            if index == 0 and position == 0:
                yield f"{head} {chunk}" if chunk else head
            elif position == 0:
                yield f"{level + 1} CONT {chunk}" if chunk else f"{level + 1} CONT"
            else:
                yield f"{level + 1} CONC {chunk}"


def _event(tag: str, date: str, place: str) -> Iterator[str]:
    if not date and not place:
        return
    yield f"1 {tag}"
    if date:
        yield from _lines(2, "DATE", date)
    if place:
        yield from _lines(2, "PLAC", place)


def _header(tree: Tree) -> Iterator[str]:
    yield "0 HEAD"
    yield "1 SOUR FAMILYTREE"
    yield "2 NAME Family Tree"
    yield "1 GEDC"
    yield f"2 VERS {GEDCOM_VERSION}"
    yield "2 FORM LINEAGE-LINKED"
    yield "1 CHAR UTF-8"
    yield f"1 DATE {timezone.now().strftime('%d %b %Y').upper()}"
    yield f"1 FILE {tree.name}.ged"


def _individual(person: Individual) -> Iterator[str]:
    yield from _lines(0, "INDI", xref=person.xref)
    yield from _lines(1, "NAME", person.name)
    if person.married_name:
        yield from _lines(1, "NAME", person.married_name)
        yield "2 TYPE married"
    yield f"1 SEX {person.sex}"
    yield from _event("BIRT", person.birth_date, person.birth_place)
    yield from _event("DEAT", person.death_date, person.death_place)
    for family in person.husband_in_families.all():
        yield f"1 FAMS @{family.xref}@"
    for family in person.wife_in_families.all():
        yield f"1 FAMS @{family.xref}@"
    for family in person.child_in_families.all():
        yield f"1 FAMC @{family.xref}@"
    for media in person.media_objects.all():
        yield f"1 OBJE @{media.xref}@"
    if person.notes:
        yield from _lines(1, "NOTE", person.notes)


def _family(family: Family) -> Iterator[str]:
    yield from _lines(0, "FAM", xref=family.xref)
    if family.husband_id:
        yield f"1 HUSB @{family.husband.xref}@"
    if family.wife_id:
        yield f"1 WIFE @{family.wife.xref}@"
    for child in family.children.all():
        yield f"1 CHIL @{child.xref}@"
    yield from _event("MARR", family.marriage_date, family.marriage_place)


def _source(source: Source) -> Iterator[str]:
    yield from _lines(0, "SOUR", xref=source.xref)
    for tag, value in (("TITL", source.title), ("AUTH", source.author),
                       ("PUBL", source.publication), ("TEXT", source.text)):
        if value:
            yield from _lines(1, tag, value)


def _media(media: MediaObject) -> Iterator[str]:
    yield from _lines(0, "OBJE", xref=media.xref)
    reference = media.file_reference or (media.file.name if media.file else "")
    yield from _lines(1, "FILE", reference)
    extension = reference.rsplit(".", 1)[-1].lower() if "." in reference else ""
    if extension:
        yield f"2 FORM {extension}"
    if media.title:
        yield from _lines(2, "TITL", media.title)


def export_querysets(tree: Tree):
    """(writer, queryset) pairs in export order, eager-loading relations."""
    return [
        (_individual, Individual.objects.filter(tree=tree).prefetch_related(
            "husband_in_families", "wife_in_families", "child_in_families", "media_objects")),
        (_family, Family.objects.filter(tree=tree).select_related("husband", "wife").prefetch_related("children")),
        (_source, Source.objects.filter(tree=tree)),
        (_media, MediaObject.objects.filter(tree=tree)),
    ]


def count_records(tree: Tree) -> Dict[str, int]:
    return {
        "INDI": Individual.objects.filter(tree=tree).count(),
        "FAM": Family.objects.filter(tree=tree).count(),
        "SOUR": Source.objects.filter(tree=tree).count(),
        "OBJE": MediaObject.objects.filter(tree=tree).count(),
    }


def iter_records(tree: Tree, *, limit: Optional[int] = None) -> Iterable:
    """Yield (writer, record) up to `limit` records, in export order."""
    emitted = 0
    for writer, queryset in export_querysets(tree):
        for record in queryset.order_by("id"):
            if limit is not None and emitted >= limit:
                return
            emitted += 1
            yield writer, record


def export_gedcom(tree: Tree, *, limit: Optional[int] = None) -> str:
    """
    The tree as GEDCOM 5.5.1 text, at most `limit` records (default
    `EXPORT_MAX_ROWS`).
    """
    if limit is None:
        limit = int(getattr(settings, "EXPORT_MAX_ROWS", 200_000))
    lines: List[str] = list(_header(tree))
    for writer, record in iter_records(tree, limit=limit):
        lines.extend(writer(record))
    lines.append("0 TRLR")
    return "\n".join(lines) + "\n"
