"""
Language identification for the mismatch warning.

langdetect names the language; the script check only decides whether a
message mixes writing systems, and stands in for the language when
langdetect has too little text to go on.
"""
import logging
import re

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from voyant.providers.base import LanguageDetector

logger = logging.getLogger(__name__)

# langdetect is randomized; a fixed seed keeps answers stable across runs
DetectorFactory.seed = 0

_SCRIPTS = {
    "cyrillic": (re.compile(r"[Ѐ-ӿ]"), "ru"),
    "kana": (re.compile(r"[぀-ゟ゠-ヿ]"), "ja"),
    "han": (re.compile(r"[一-龯]"), "zh"),
    "arabic": (re.compile(r"[؀-ۿ]"), "ar"),
    "hangul": (re.compile(r"[가-힯]"), "ko"),
    "latin": (re.compile(r"[A-Za-zÀ-ſ]"), "en"),
}

MIN_LIBRARY_CHARS = 10
MIN_LIBRARY_WORDS = 4
MIN_LIBRARY_CONFIDENCE = 0.8
MAX_CONFIDENCE = 0.95


def scripts_in(text: str) -> list[str]:
    present = [name for name, (rx, _) in _SCRIPTS.items() if rx.search(text)]
    # Japanese text mixes kana and kanji; that's one language, not two
    if "kana" in present and "han" in present:
        present.remove("han")
    return present


class LangDetectLanguageDetector(LanguageDetector):
    def detect(self, text: str) -> dict:
        clean = re.sub(r"[\W_]+", " ", text or "").strip()
        if len(clean) < 3:
            return {"language": "unknown", "has_mixed_languages": False, "confidence": 0.1}

        present = scripts_in(clean)
        if not present:
            return {"language": "unknown", "has_mixed_languages": False, "confidence": 0.1}
        mixed = len(present) > 1

        if len(clean) > MIN_LIBRARY_CHARS and len(clean.split()) >= MIN_LIBRARY_WORDS:
            try:
                top = detect_langs(clean)[0]
                if top.prob >= MIN_LIBRARY_CONFIDENCE:
                    return {
                        "language": top.lang,
                        "has_mixed_languages": mixed,
                        "confidence": min(top.prob, MAX_CONFIDENCE),
                    }
            except LangDetectException as e:
                logger.debug("langdetect gave up: %s", e)

        # short or ambiguous text: name the language by its script
        non_latin = [p for p in present if p != "latin"]
        primary = non_latin[0] if non_latin else "latin"
        return {
            "language": _SCRIPTS[primary][1],
            "has_mixed_languages": mixed,
            "confidence": 0.75 if primary != "latin" else 0.6,
        }
