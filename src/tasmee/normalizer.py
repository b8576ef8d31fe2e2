import re

# Arabic diacritic Unicode ranges (harakat, Quranic annotation marks, small high letters, tatweel)
_DIACRITICS = re.compile(
    '[\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06DC'
    '\u06DF-\u06ED\u08D3-\u08FF\u0640]'
)

# Character normalization map
_NORM_MAP = str.maketrans({
    '\u0623': '\u0627',  # أ -> ا
    '\u0625': '\u0627',  # إ -> ا
    '\u0622': '\u0627',  # آ -> ا
    '\u0671': '\u0627',  # ٱ -> ا
    '\u0629': '\u0647',  # ة -> ه
    '\u0649': '\u064A',  # ى -> ي
    '\u06CC': '\u064A',  # ی -> ي (Farsi yeh)
    '\u06A9': '\u0643',  # ک -> ك (Farsi kaf)
})


def normalize_arabic(text: str) -> str:
    text = _DIACRITICS.sub('', text)
    text = text.translate(_NORM_MAP)
    text = text.lower()
    text = ' '.join(text.split())
    return text


def tokenize(text: str) -> list[str]:
    """Normalized word list of *text*."""
    return normalize_arabic(text).split()
