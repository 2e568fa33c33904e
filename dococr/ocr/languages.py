import re

from dococr.ocr.exceptions import UnsupportedLanguageError

SUPPORTED_LANGUAGES: dict[str, str] = {
    "eng": "English",
    "fra": "French",
    "deu": "German",
    "spa": "Spanish",
    "ita": "Italian",
    "por": "Portuguese",
    "rus": "Russian",
    "ara": "Arabic",
    "chi_sim": "Chinese Simplified",
    "chi_tra": "Chinese Traditional",
    "jpn": "Japanese",
    "kor": "Korean",
    "hin": "Hindi",
}

DEFAULT_LANGUAGE = "eng"

_SCRIPT_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[؀-ۿ]"), "ara"),
    (re.compile(r"[一-鿿]"), "chi_sim"),
    (re.compile(r"[぀-ゟ゠-ヿ]"), "jpn"),
    (re.compile(r"[가-힯]"), "kor"),
    (re.compile(r"[Ѐ-ӿ]"), "rus"),
    (re.compile(r"[ऀ-ॿ]"), "hin"),
)


def parse_languages(value: str | None) -> str:
    """Validate a language specifier such as ``"eng+fra"`` and return it normalized.

    Commas and whitespace are accepted as separators. Duplicates are dropped
    while keeping order.

    Raises:
        UnsupportedLanguageError: if any code is outside SUPPORTED_LANGUAGES.
    """
    codes = [c for c in re.split(r"[+,\s]+", (value or "").strip()) if c]
    if not codes:
        return DEFAULT_LANGUAGE
    unsupported = [c for c in codes if c not in SUPPORTED_LANGUAGES]
    if unsupported:
        raise UnsupportedLanguageError(
            f"Unsupported language(s) {unsupported}. Choose from: {list(SUPPORTED_LANGUAGES)}"
        )
    return "+".join(dict.fromkeys(codes))


def detect_language(text: str) -> str:
    """Guess a language code from the script of the text. Defaults to English."""
    for pattern, code in _SCRIPT_PATTERNS:
        if pattern.search(text):
            return code
    return DEFAULT_LANGUAGE
