"""Fetch Quran text from alquran.cloud API and save as the engine's corpus JSON."""
import json
import urllib.request
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from tasmee.config import DATA_PATH

URL = "https://api.alquran.cloud/v1/quran/quran-uthmani"

DATA_PATH.parent.mkdir(parents=True, exist_ok=True)

print("Fetching Quran text from alquran.cloud...")
with urllib.request.urlopen(URL) as resp:
    data = json.loads(resp.read())

surahs = data["data"]["surahs"]
verses = []

for surah in surahs:
    for ayah in surah["ayahs"]:
        verses.append({
            "surah": surah["number"],
            "ayah": ayah["numberInSurah"],
            "text_uthmani": ayah["text"],
            "surah_name": surah["name"],
            "surah_name_en": surah["englishName"],
        })

with open(DATA_PATH, "w", encoding="utf-8") as f:
    json.dump(verses, f, ensure_ascii=False, indent=2)

print(f"Saved {len(verses)} verses to {DATA_PATH}")
