"""Text normalization helpers for bibliographic metadata.

Metadata arrives from the publication service with HTML markup, inconsistent
capitalisation and embedded ORCID identifiers. These helpers bring titles,
venue names and author names into a consistent display form.
"""

import html
import re
import unicodedata
from typing import Any, List

MAX_TITLE_LENGTH = 300
TITLE_TRUNCATION_POINT = 295
TITLE_TRUNCATION_SUFFIX = "[...]"

ORDINAL_REGEX = re.compile(r"\d+(?:st|nd|rd|th)", re.IGNORECASE)
ROMAN_NUMERAL_REGEX = re.compile(
    r"^M{0,4}(CM|CD|D?C{0,3})(XC|XL|L?X{0,3})(IX|IV|V?I{0,3})(\.?)$", re.IGNORECASE
)
ORCID_REGEX = re.compile(r",\s+(\d{4}-\d{4}-\d{4}-\d{3}[0-9Xx])")
HTML_TAG_REGEX = re.compile(r"<[^<>]*>")

# Words with fixed spelling regardless of position in a title
TITLE_WORD_MAP = {
    "a": "a",
    "an": "an",
    "acm": "ACM",
    "and": "and",
    "by": "by",
    "chi": "CHI",
    "during": "during",
    "for": "for",
    "from": "from",
    "ieee": "IEEE",
    "ii": "II",
    "iii": "III",
    "in": "in",
    "not": "not",
    "of": "of",
    "or": "or",
    "on": "on",
    "the": "the",
    "their": "their",
    "through": "through",
    "to": "to",
    "via": "via",
    "with": "with",
    "within": "within",
}

# Extended Latin characters that NFD decomposition leaves intact
_NAME_TRANSLITERATIONS = {
    "ø": "o",
    "Ø": "o",
    "å": "a",
    "Å": "a",
    "æ": "ae",
    "Æ": "ae",
    "ð": "d",
    "Ð": "d",
    "þ": "th",
    "Þ": "th",
    "ß": "ss",
    "ẞ": "ss",
}


def remove_html_tags(text: Any) -> str:
    """Decode HTML entities and strip tags.

    Args:
        text: Raw string, possibly containing markup. Non-strings yield "".

    Returns:
        Plain text.
    """
    if not text or not isinstance(text, str):
        return ""
    return HTML_TAG_REGEX.sub("", html.unescape(text))


def clean_title(title: str) -> str:
    """Clean and standardize a publication title.

    Strips markup, applies fixed word spellings, normalises dashes,
    capitalises the first character and truncates overly long titles.

    Args:
        title: Raw title string

    Returns:
        Cleaned title
    """
    words = remove_html_tags(title).split(" ")
    cleaned = " ".join(TITLE_WORD_MAP.get(word.lower(), word) for word in words).strip()
    cleaned = (
        cleaned.replace("---", "—")
        .replace("--", "–")
        .replace(" - ", " – ")
    )
    cleaned = re.sub(r" ?— ?", "—", cleaned)
    cleaned = re.sub(r"&[A-Z]", lambda m: m.group(0).lower(), cleaned)

    if cleaned:
        cleaned = cleaned[0].upper() + cleaned[1:]
    if len(cleaned) > MAX_TITLE_LENGTH:
        return cleaned[:TITLE_TRUNCATION_POINT] + TITLE_TRUNCATION_SUFFIX
    return cleaned


def join_subtitle(title: str, subtitle: Any) -> str:
    """Append a subtitle unless the title already starts with it."""
    if not subtitle or not isinstance(subtitle, str):
        return title
    if title.lower().startswith(subtitle.lower()):
        return title
    separator = "" if re.match(r"^.*\W$", remove_html_tags(title)) else ":"
    return f"{title}{separator} {subtitle}"


def clean_container(container: Any) -> str:
    """Normalise journal/conference names word by word."""
    if not container or not isinstance(container, str):
        return ""

    words = []
    for word in container.split(" "):
        if re.search(r"\([^)]+\)", word):
            mapped = word.upper()
        elif ORDINAL_REGEX.search(word):
            mapped = word.lower()
        elif word and ROMAN_NUMERAL_REGEX.match(word):
            mapped = word.upper()
        else:
            mapped = TITLE_WORD_MAP.get(word.lower(), word)
        words.append(mapped)

    joined = " ".join(words).strip()
    joined = re.sub(r"^[. ]+", "", joined)
    joined = re.sub(r"[. ]+$", "", joined)
    return clean_title(joined)


def strip_orcids(author: str) -> str:
    """Remove ', 0000-0000-0000-0000' ORCID suffixes from an author string."""
    return ORCID_REGEX.sub("", author)


def split_authors(author: Any) -> List[str]:
    """Split a '; '-separated author string into names."""
    if not author or not isinstance(author, str):
        return []
    return [name.strip() for name in author.split(";") if name.strip()]


def name_to_id(name: str) -> str:
    """Convert an author name to an accent-free, lower-case identifier.

    Examples:
        >>> name_to_id("Müller, Jörg")
        'muller, jorg'
        >>> name_to_id("Ørsted, H.")
        'orsted, h.'
    """
    decomposed = unicodedata.normalize("NFD", strip_orcids(name).strip())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    for source, target in _NAME_TRANSLITERATIONS.items():
        stripped = stripped.replace(source, target)
    return stripped.lower()
