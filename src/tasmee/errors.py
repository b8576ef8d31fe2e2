class TasmeeError(Exception):
    """Base class for errors raised by the alignment engine."""


class CorpusError(TasmeeError):
    """The verse corpus is malformed (duplicate suras, gaps in verse numbers)."""


class SuraNotFoundError(TasmeeError, LookupError):
    def __init__(self, sura: int):
        super().__init__(f"Sura {sura} not found")
        self.sura = sura


class PositionError(TasmeeError, ValueError):
    def __init__(self, sura: int, ayah: int, verse_count: int):
        super().__init__(
            f"Ayah {ayah} is outside sura {sura} (1..{verse_count})"
        )
        self.sura = sura
        self.ayah = ayah
        self.verse_count = verse_count
