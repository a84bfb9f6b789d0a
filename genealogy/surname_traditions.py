"""
Surname traditions: derive name fields for a new relative from existing names.

GEDCOM names mark the surname with slashes, e.g. ``John /White/`` or
``Mary /van Black/``. When a user adds a child, parent or spouse, the UI
pre-fills the new person's name from the relatives already on file according
to the tree's `SURNAME_TRADITION` setting.

Every tradition answers the same four questions:

- ``has_married_names()`` / ``has_surnames()``
- ``new_child_names(father_name, mother_name, child_sex)``
- ``new_parent_names(child_name, parent_sex)``
- ``new_spouse_names(spouse_name, spouse_sex)``

Results are dicts of GEDCOM name parts keyed ``NAME``, ``SPFX``, ``SURN``,
``GIVN`` and ``_MARNM`` (always in that order). Empty ``SPFX``/``SURN``/``GIVN``
values are dropped. Sex markers are ``M``, ``F`` and ``U``.

The traditions are stateless; `TRADITIONS` holds one shared instance of each.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

MALE = "M"
FEMALE = "F"

# Surname prefixes recognised in front of a surname ("van", "de la", ...).
_SPFX = (
    r"(?:a|aan|ab|af|al|ap|as|auf|av|bat|ben|bij|bin|bint|da|de|del|della|dem|den|der|"
    r"di|du|el|fitz|het|ibn|la|las|le|les|los|onder|op|over|'s|st|'t|te|ten|ter|till|"
    r"tot|uit|uijt|van|vanden|von|voor|vor)"
)
REGEX_SPFX_SURN = re.compile(r"(?P<NAME>/(?P<SPFX>(?:" + _SPFX + r" )*)(?P<SURN>[^/]*)/)")
REGEX_SURN = re.compile(r"(?P<NAME>/(?P<SURN>[^/]+)/)")
REGEX_SURNS = re.compile(r"/(?P<SURN1>[^/]*)/ +/(?P<SURN2>[^/]*)/")
REGEX_GIVN = re.compile(r"^(?P<GIVN>[^/ ]+)")
REGEX_PATRONYMIC = re.compile(r"(?P<GIVN>[^ /]+)(?:sson|sdottir)$")

_KEY_ORDER = ("NAME", "SPFX", "SURN", "GIVN", "_MARNM")


def _names(**parts: Optional[str]) -> dict[str, str]:
    """Build a result dict in canonical key order, dropping empty optional parts."""
    result = {}
    for key in _KEY_ORDER:
        value = parts.get(key)
        if key == "NAME" and value is not None:
            result[key] = value
        elif value:
            result[key] = value
    return result


def _inflect(text: str, rules: Iterable[tuple[str, str]]) -> str:
    """Apply the first rule whose word ending matches `text`."""
    for ending, replacement in rules:
        pattern = re.compile(ending + r"\b")
        if pattern.search(text):
            return pattern.sub(replacement, text)
    return text


def split_name(name: str) -> dict[str, str]:
    """
    Split a GEDCOM name into its given names, surname prefix and surname.

    >>> split_name("John Paul /van der Berg/")
    {'GIVN': 'John Paul', 'SPFX': 'van der', 'SURN': 'Berg'}

    Names without a slash-delimited surname are all given names.
    """
    name = name or ""
    given = name.split("/", 1)[0].strip()
    match = REGEX_SPFX_SURN.search(name)
    if not match:
        return {"GIVN": " ".join(name.split()), "SPFX": "", "SURN": ""}
    return {
        "GIVN": " ".join(given.split()),
        "SPFX": match.group("SPFX").strip(),
        "SURN": match.group("SURN").strip(),
    }


class DefaultSurnameTradition:
    """Surnames exist but nothing is inherited: every new name is ``//``."""

    name = "default"
    label = "Default"

    def has_married_names(self) -> bool:
        return False

    def has_surnames(self) -> bool:
        return True

    def new_child_names(self, father_name: str, mother_name: str, child_sex: str) -> dict[str, str]:
        return _names(NAME="//")

    def new_parent_names(self, child_name: str, parent_sex: str) -> dict[str, str]:
        return _names(NAME="//")

    def new_spouse_names(self, spouse_name: str, spouse_sex: str) -> dict[str, str]:
        return _names(NAME="//")

    # Shared by the lineal traditions.
    @staticmethod
    def _surname_of(name: str) -> dict[str, str]:
        match = REGEX_SPFX_SURN.search(name or "")
        if not match:
            return _names(NAME="//")
        return _names(
            NAME=match.group("NAME"),
            SPFX=match.group("SPFX").strip(),
            SURN=match.group("SURN"),
        )


class NoSurnameTradition(DefaultSurnameTradition):
    """Names carry no surname at all."""

    name = "none"
    label = "None"

    def has_surnames(self) -> bool:
        return False

    def new_child_names(self, father_name, mother_name, child_sex):
        return _names(NAME="")

    def new_parent_names(self, child_name, parent_sex):
        return _names(NAME="")

    def new_spouse_names(self, spouse_name, spouse_sex):
        return _names(NAME="")


class PatrilinealSurnameTradition(DefaultSurnameTradition):
    """Children take their father's surname."""

    name = "patrilineal"
    label = "Patrilineal"

    def new_child_names(self, father_name, mother_name, child_sex):
        return self._surname_of(father_name)

    def new_parent_names(self, child_name, parent_sex):
        if parent_sex == MALE:
            return self._surname_of(child_name)
        return _names(NAME="//")


class MatrilinealSurnameTradition(DefaultSurnameTradition):
    """Children take their mother's surname."""

    name = "matrilineal"
    label = "Matrilineal"

    def new_child_names(self, father_name, mother_name, child_sex):
        return self._surname_of(mother_name)

    def new_parent_names(self, child_name, parent_sex):
        if parent_sex == FEMALE:
            return self._surname_of(child_name)
        return _names(NAME="//")


class PaternalSurnameTradition(PatrilinealSurnameTradition):
    """Patrilineal, and wives are known by their husband's surname (`_MARNM`)."""

    name = "paternal"
    label = "Paternal"

    def has_married_names(self) -> bool:
        return True

    def new_parent_names(self, child_name, parent_sex):
        match = REGEX_SPFX_SURN.search(child_name or "")
        if match and parent_sex == MALE:
            return self._surname_of(child_name)
        if match and parent_sex == FEMALE:
            return _names(NAME="//", _MARNM=match.group("NAME"))
        return _names(NAME="//")

    def new_spouse_names(self, spouse_name, spouse_sex):
        match = REGEX_SPFX_SURN.search(spouse_name or "")
        if match and spouse_sex == FEMALE:
            return _names(NAME="//", _MARNM=match.group("NAME"))
        return _names(NAME="//")


class SpanishSurnameTradition(DefaultSurnameTradition):
    """Two surnames: the father's first surname, then the mother's first surname."""

    name = "spanish"
    label = "Spanish"

    @staticmethod
    def _surnames(name: str) -> Optional[re.Match]:
        return REGEX_SURNS.search(name or "")

    def new_child_names(self, father_name, mother_name, child_sex):
        father = self._surnames(father_name)
        mother = self._surnames(mother_name)
        first = father.group("SURN1") if father else ""
        second = mother.group("SURN1") if mother else ""
        return {"NAME": f"/{first}/ /{second}/", "SURN": f"{first},{second}".strip(",")}

    def new_parent_names(self, child_name, parent_sex):
        match = self._surnames(child_name)
        if match and parent_sex == MALE:
            return {"NAME": f"/{match.group('SURN1')}/ //", "SURN": match.group("SURN1")}
        if match and parent_sex == FEMALE:
            return {"NAME": f"/{match.group('SURN2')}/ //", "SURN": match.group("SURN2")}
        return {"NAME": "// //"}

    def new_spouse_names(self, spouse_name, spouse_sex):
        return {"NAME": "// //"}


class PortugueseSurnameTradition(SpanishSurnameTradition):
    """Two surnames: the mother's second surname, then the father's second surname."""

    name = "portuguese"
    label = "Portuguese"

    def new_child_names(self, father_name, mother_name, child_sex):
        father = self._surnames(father_name)
        mother = self._surnames(mother_name)
        first = mother.group("SURN2") if mother else ""
        second = father.group("SURN2") if father else ""
        return {"NAME": f"/{first}/ /{second}/", "SURN": f"{first},{second}".strip(",")}

    def new_parent_names(self, child_name, parent_sex):
        match = self._surnames(child_name)
        if match and parent_sex == MALE:
            return {"NAME": f"// /{match.group('SURN2')}/", "SURN": match.group("SURN2")}
        if match and parent_sex == FEMALE:
            return {"NAME": f"// /{match.group('SURN1')}/", "SURN": match.group("SURN1")}
        return {"NAME": "// //"}


class IcelandicSurnameTradition(DefaultSurnameTradition):
    """Patronymics: a child of Jon is Jonsson or Jonsdottir."""

    name = "icelandic"
    label = "Icelandic"

    def has_surnames(self) -> bool:
        return False

    def new_child_names(self, father_name, mother_name, child_sex):
        match = REGEX_GIVN.search(father_name or "")
        if match and child_sex == MALE:
            return {"NAME": match.group("GIVN") + "sson"}
        if match and child_sex == FEMALE:
            return {"NAME": match.group("GIVN") + "sdottir"}
        return {}

    def new_parent_names(self, child_name, parent_sex):
        match = REGEX_PATRONYMIC.search(child_name or "")
        if match and parent_sex == MALE:
            return {"NAME": match.group("GIVN"), "GIVN": match.group("GIVN")}
        return {}

    def new_spouse_names(self, spouse_name, spouse_sex):
        return {}


class LithuanianSurnameTradition(PaternalSurnameTradition):
    """
    Paternal, with gendered surname forms.

    Daughters and wives use feminine endings of the family surname
    (Gabrielius: daughter Gabrieliūtė, wife Gabrielienė); `SURN` keeps the
    masculine form so indexes group the family together.
    """

    name = "lithuanian"
    label = "Lithuanian"

    INFLECT_WIFE = (("ius", "ienė"), ("as", "ienė"), ("is", "ienė"), ("ys", "ienė"), ("us", "ienė"))
    INFLECT_DAUGHTER = (("as", "aitė"), ("is", "ytė"), ("ys", "ytė"), ("ius", "iūtė"), ("us", "utė"))
    INFLECT_MALE_FROM_DAUGHTER = (("aitė", "as"), ("ytė", "is"), ("iūtė", "ius"), ("utė", "us"))

    def new_child_names(self, father_name, mother_name, child_sex):
        match = REGEX_SURN.search(father_name or "")
        if not match:
            return _names(NAME="//")
        name = match.group("NAME")
        if child_sex == FEMALE:
            name = _inflect(name, self.INFLECT_DAUGHTER)
        return _names(NAME=name, SURN=match.group("SURN"))

    def new_parent_names(self, child_name, parent_sex):
        match = REGEX_SURN.search(child_name or "")
        if match and parent_sex == MALE:
            return _names(
                NAME=_inflect(match.group("NAME"), self.INFLECT_MALE_FROM_DAUGHTER),
                SURN=_inflect(match.group("SURN"), self.INFLECT_MALE_FROM_DAUGHTER),
            )
        if match and parent_sex == FEMALE:
            masculine = _inflect(match.group("NAME"), self.INFLECT_MALE_FROM_DAUGHTER)
            return _names(NAME="//", _MARNM=_inflect(masculine, self.INFLECT_WIFE))
        return _names(NAME="//")

    def new_spouse_names(self, spouse_name, spouse_sex):
        match = REGEX_SURN.search(spouse_name or "")
        if match and spouse_sex == FEMALE:
            return _names(NAME="//", _MARNM=_inflect(match.group("NAME"), self.INFLECT_WIFE))
        return _names(NAME="//")


class PolishSurnameTradition(PaternalSurnameTradition):
    """Paternal, with feminine `-ska/-cka/-dzka/-żka` forms for daughters and wives."""

    name = "polish"
    label = "Polish"

    INFLECT_FEMALE = (("cki", "cka"), ("dzki", "dzka"), ("ski", "ska"), ("żki", "żka"))
    INFLECT_MALE = (("cka", "cki"), ("dzka", "dzki"), ("ska", "ski"), ("żka", "żki"))

    def new_child_names(self, father_name, mother_name, child_sex):
        match = REGEX_SURN.search(father_name or "")
        if not match:
            return _names(NAME="//")
        name = match.group("NAME")
        if child_sex == FEMALE:
            name = _inflect(name, self.INFLECT_FEMALE)
        return _names(NAME=name, SURN=match.group("SURN"))

    def new_parent_names(self, child_name, parent_sex):
        match = REGEX_SURN.search(child_name or "")
        if match and parent_sex == MALE:
            return _names(
                NAME=_inflect(match.group("NAME"), self.INFLECT_MALE),
                SURN=_inflect(match.group("SURN"), self.INFLECT_MALE),
            )
        if match and parent_sex == FEMALE:
            return _names(NAME="//", _MARNM=_inflect(match.group("NAME"), self.INFLECT_FEMALE))
        return _names(NAME="//")

    def new_spouse_names(self, spouse_name, spouse_sex):
        match = REGEX_SURN.search(spouse_name or "")
        if match and spouse_sex == FEMALE:
            return _names(NAME="//", _MARNM=_inflect(match.group("NAME"), self.INFLECT_FEMALE))
        return _names(NAME="//")


TRADITIONS = {
    tradition.name: tradition
    for tradition in (
        NoSurnameTradition(),
        DefaultSurnameTradition(),
        PatrilinealSurnameTradition(),
        MatrilinealSurnameTradition(),
        PaternalSurnameTradition(),
        SpanishSurnameTradition(),
        PortugueseSurnameTradition(),
        IcelandicSurnameTradition(),
        LithuanianSurnameTradition(),
        PolishSurnameTradition(),
    )
}

TRADITION_CHOICES = [(key, tradition.label) for key, tradition in TRADITIONS.items()]


def get_tradition(name: str) -> DefaultSurnameTradition:
    """Return the named tradition; unknown names fall back to `default`."""
    return TRADITIONS.get(name, TRADITIONS["default"])
