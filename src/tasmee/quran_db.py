"""Verse corpus: suras, verses and lookups.

The engine only needs an ordered list of suras, each holding verses numbered
contiguously from 1. Three sources are supported:

- the JSON verse list written by ``scripts/fetch_quran_text.py``
  (``[{"surah", "ayah", "text_uthmani", "surah_name", ...}, ...]``), whose
  opening verses carry the bismillah as a prefix,
- Tanzil XML (``<quran><sura index name><aya index text bismillah?/>``),
- an in-memory ``{sura_index: [verse_text, ...]}`` mapping.
"""

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

from tasmee.config import DATA_PATH
from tasmee.errors import CorpusError, SuraNotFoundError
from tasmee.normalizer import normalize_arabic

log = logging.getLogger(__name__)

_BSM_WORDS = normalize_arabic("بسم الله الرحمن الرحيم").split()

# Al-Fatiha 1:1 IS the bismillah, At-Tawbah has none
_NO_BSM_PREFIX = (1, 9)


def split_bismillah(text: str) -> tuple[str | None, str]:
    """Split a leading bismillah off an opening verse.

    Returns ``(bismillah, rest)`` with both parts in the original script, or
    ``(None, text)`` when the verse does not start with it.
    """
    words = text.split()
    n = len(_BSM_WORDS)
    if len(words) <= n or [normalize_arabic(w) for w in words[:n]] != _BSM_WORDS:
        return None, text
    return " ".join(words[:n]), " ".join(words[n:])


@dataclass(frozen=True)
class Verse:
    sura: int
    ayah: int
    text: str

    @property
    def text_clean(self) -> str:
        return normalize_arabic(self.text)


@dataclass(frozen=True)
class Sura:
    index: int
    verses: tuple[Verse, ...]
    name: str = ""
    name_en: str = ""
    bismillah: str | None = None

    def __len__(self):
        return len(self.verses)

    def verse(self, ayah: int) -> Verse | None:
        if 1 <= ayah <= len(self.verses):
            return self.verses[ayah - 1]
        return None


@dataclass
class QuranDB:
    suras: list[Sura] = field(default_factory=list)

    def __post_init__(self):
        self._by_index: dict[int, Sura] = {}
        self._order: dict[int, int] = {}
        for pos, s in enumerate(self.suras):
            if s.index in self._by_index:
                raise CorpusError(f"Duplicate sura index {s.index}")
            if not s.verses:
                raise CorpusError(f"Sura {s.index} has no verses")
            for expected, v in enumerate(s.verses, start=1):
                if v.ayah != expected or v.sura != s.index:
                    raise CorpusError(
                        f"Sura {s.index}: expected ayah {expected}, got {v.sura}:{v.ayah}"
                    )
            self._by_index[s.index] = s
            self._order[s.index] = pos

    # -- loaders ---------------------------------------------------------

    @classmethod
    def from_json(cls, path: Path = DATA_PATH) -> "QuranDB":
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)

        grouped: dict[int, list[dict]] = {}
        for row in rows:
            grouped.setdefault(row["surah"], []).append(row)

        suras = []
        for index, verses in grouped.items():
            verses.sort(key=lambda r: r["ayah"])
            texts = [r["text_uthmani"] for r in verses]
            # Opening verses carry the bismillah as a prefix in this format
            bismillah = None
            if index not in _NO_BSM_PREFIX and verses[0]["ayah"] == 1:
                bismillah, texts[0] = split_bismillah(texts[0])
            suras.append(
                Sura(
                    index=index,
                    verses=tuple(
                        Verse(sura=index, ayah=r["ayah"], text=t)
                        for r, t in zip(verses, texts)
                    ),
                    name=verses[0].get("surah_name", ""),
                    name_en=verses[0].get("surah_name_en", ""),
                    bismillah=bismillah,
                )
            )
        db = cls(suras)
        log.info("Loaded %d verses in %d suras from %s", db.total_verses, db.surah_count, path)
        return db

    @classmethod
    def from_tanzil_xml(cls, path: Path) -> "QuranDB":
        root = ET.parse(path).getroot()
        suras = []
        for sura_el in root.iter("sura"):
            index = int(sura_el.get("index"))
            ayas = sura_el.findall("aya")
            bismillah = ayas[0].get("bismillah") if ayas else None
            suras.append(
                Sura(
                    index=index,
                    verses=tuple(
                        Verse(sura=index, ayah=int(a.get("index")), text=a.get("text", ""))
                        for a in ayas
                    ),
                    name=sura_el.get("name", ""),
                    name_en=sura_el.get("tname", ""),
                    bismillah=bismillah,
                )
            )
        db = cls(suras)
        log.info("Loaded %d verses in %d suras from %s", db.total_verses, db.surah_count, path)
        return db

    @classmethod
    def from_suras(cls, texts: dict[int, list[str]], names: dict[int, str] | None = None) -> "QuranDB":
        names = names or {}
        return cls([
            Sura(
                index=index,
                verses=tuple(
                    Verse(sura=index, ayah=i, text=t) for i, t in enumerate(verses, start=1)
                ),
                name=names.get(index, ""),
            )
            for index, verses in texts.items()
        ])

    # -- lookups ---------------------------------------------------------

    @property
    def total_verses(self):
        return sum(len(s) for s in self.suras)

    @property
    def surah_count(self):
        return len(self.suras)

    @property
    def last_sura_index(self) -> int | None:
        return self.suras[-1].index if self.suras else None

    def has_sura(self, sura: int) -> bool:
        return sura in self._by_index

    def get_sura(self, sura: int) -> Sura:
        try:
            return self._by_index[sura]
        except KeyError:
            raise SuraNotFoundError(sura) from None

    def get_verse(self, sura: int, ayah: int) -> Verse | None:
        s = self._by_index.get(sura)
        return s.verse(ayah) if s is not None else None

    def get_next_verse(self, sura: int, ayah: int) -> Verse | None:
        """Return the verse after sura:ayah, crossing into the next sura, or None at the end."""
        s = self._by_index.get(sura)
        if s is None or s.verse(ayah) is None:
            return None
        if ayah < len(s):
            return s.verses[ayah]
        pos = self._order[sura]
        if pos + 1 < len(self.suras):
            return self.suras[pos + 1].verses[0]
        return None
