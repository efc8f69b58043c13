"""Text and identity normalizers feeding the scorer.

All helpers are total: unparseable input yields None, "" or 0.0, never an
exception. Missing evidence is neutral for the scorer.
"""

import re
import unicodedata

from rapidfuzz.distance import Levenshtein

TAX_ID_LENGTH = 10
SUBACCOUNT_DIGITS = 12
MIN_SUBACCOUNT_DIGITS = 6

# Legal-form tokens, matched against punctuation-free normalized names
_LEGAL_FORMS = [
    "spolka z ograniczona odpowiedzialnoscia",
    "spolka z o o",
    "spolka akcyjna",
    "spolka jawna",
    "spolka komandytowa",
    "spolka partnerska",
    "sp z o o",
    "sp zoo",
    "spzoo",
    "sp j",
    "sp k",
    "sp p",
    "s a",
    "sa",
    "gmbh",
    "ltd",
    "llc",
    "inc",
]
_LEGAL_FORM_RE = re.compile(r"\b(?:%s)\b" % "|".join(re.escape(f) for f in _LEGAL_FORMS))
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Words carrying no identity in party names
_STOPWORDS = frozenset({"and", "the", "for", "oraz", "dla", "firma", "przedsiebiorstwo", "uslugowe"})

_TAX_ID_RE = re.compile(
    r"\b(\d{3}[\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2}|\d{3}[\s-]?\d{2}[\s-]?\d{2}[\s-]?\d{3}|\d{10})\b"
)
_TAX_ID_LABEL_RE = re.compile(r"NIP[:\s]*", re.IGNORECASE)
# Bank metadata tag: "ID IPH: XX005832141328" (country-style prefix, then digits)
_METADATA_TAG_RE = re.compile(r"ID\s*IPH:\s*([A-Z0-9]+)", re.IGNORECASE)


# ── Plain text ─────────────────────────────────────────────────────────

def normalize_string(text: str | None) -> str:
    """Lowercase, strip diacritics and collapse whitespace."""
    if not text:
        return ""
    text = text.lower().replace("ł", "l")
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return _WHITESPACE_RE.sub(" ", text).strip()


def digits_only(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\D", "", text)


def string_similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity in [0, 1]."""
    a = normalize_string(a)
    b = normalize_string(b)
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


# ── Tax identifiers ────────────────────────────────────────────────────

def normalize_tax_id(tax_id: str | None) -> str | None:
    """Canonical digit string of a tax ID, or None when it is not one.

    Country prefixes and separators are dropped ("PL 583-214-13-28" -> "5832141328").
    """
    digits = digits_only(tax_id)
    return digits if len(digits) == TAX_ID_LENGTH else None


def extract_tax_ids(text: str | None) -> list[str]:
    """All tax IDs written in free text, with or without separators."""
    if not text:
        return []
    cleaned = _TAX_ID_LABEL_RE.sub("", text)
    found = []
    for match in _TAX_ID_RE.finditer(cleaned):
        digits = digits_only(match.group(1))
        if len(digits) == TAX_ID_LENGTH and digits not in found:
            found.append(digits)
    return found


def extract_tax_id(text: str | None) -> str | None:
    found = extract_tax_ids(text)
    return found[0] if found else None


def extract_tax_id_from_metadata(text: str | None) -> str | None:
    """Tax ID carried in the bank metadata tag of an extended title.

    The tag value is a two-letter prefix followed by digits; the tax ID is
    the trailing block of TAX_ID_LENGTH digits.
    """
    if not text:
        return None
    match = _METADATA_TAG_RE.search(text)
    if not match:
        return None
    digits = digits_only(match.group(1))
    if len(digits) < TAX_ID_LENGTH:
        return None
    return digits[-TAX_ID_LENGTH:]


# ── Bank sub-accounts ──────────────────────────────────────────────────

def extract_subaccount_digits(account: str | None) -> str | None:
    """Trailing 12 digits of an account string, the part stable across notations."""
    digits = digits_only(account)
    if len(digits) < MIN_SUBACCOUNT_DIGITS:
        return None
    return digits[-SUBACCOUNT_DIGITS:]


def compare_subaccounts(a: str | None, b: str | None) -> float:
    """1.0 for equal suffixes, 0.9 when the shorter one ends the longer one."""
    left = extract_subaccount_digits(a)
    right = extract_subaccount_digits(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    shorter, longer = sorted((left, right), key=len)
    if len(shorter) < len(longer) and longer.endswith(shorter):
        return 0.9
    return 0.0


# ── Company names ──────────────────────────────────────────────────────

def normalize_company_name(name: str | None) -> str:
    """Normalized name with punctuation and legal-form tokens removed."""
    text = normalize_string(name)
    text = _PUNCTUATION_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    text = _LEGAL_FORM_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def significant_words(name: str | None) -> list[str]:
    return [
        w for w in normalize_company_name(name).split(" ")
        if len(w) >= 3 and w not in _STOPWORDS
    ]


def compare_company_names(name1: str | None, name2: str | None) -> float:
    """Fuzzy similarity of two party names in [0, 1].

    Exact -> 1.0, containment -> 0.9, word overlap regardless of order
    -> 0.7-0.95, otherwise plain edit-distance similarity.
    """
    left = normalize_company_name(name1)
    right = normalize_company_name(name2)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.9

    words1 = [w for w in left.split(" ") if len(w) > 1]
    words2 = [w for w in right.split(" ") if len(w) > 1]
    if words1 and words2:
        matched = 0
        used: set[int] = set()
        for word1 in words1:
            for i, word2 in enumerate(words2):
                if i in used:
                    continue
                if word1 == word2 or Levenshtein.normalized_similarity(word1, word2) >= 0.85:
                    matched += 1
                    used.add(i)
                    break
        ratio = matched / max(len(words1), len(words2))
        # "JANOWSKI TOMASZ" vs "Tomasz Janowski"
        if ratio >= 0.8:
            return 0.85 + ratio * 0.1
        if ratio >= 0.5:
            return 0.6 + ratio * 0.2

    return Levenshtein.normalized_similarity(left, right)


def word_overlap_score(buyer_name: str | None, text: str | None, strict: bool = False) -> float:
    """Fallback for senders that spell the buyer differently.

    Scores 0.5-0.8 when at least two significant buyer words, or half of
    them, appear in the text; 0.0 otherwise. strict requires two words.
    """
    buyer_words = significant_words(buyer_name)
    if not buyer_words:
        return 0.0
    other_words = set(significant_words(text))
    shared = sum(1 for w in set(buyer_words) if w in other_words)
    if shared == 0:
        return 0.0
    unique_buyer = len(set(buyer_words))
    if shared >= 2 or (not strict and shared * 2 >= unique_buyer):
        return min(0.8, 0.5 + 0.3 * shared / unique_buyer)
    return 0.0
