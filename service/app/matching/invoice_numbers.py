"""Invoice-number shapes.

Banks routinely mangle invoice numbers in transfer titles: spaces appear
inside the sequence number ("PS 1 7/12/2025"), separators change
("PS 23_12_2025") and prefixes get swapped ("INV/27/12/2025"). A shape
knows how one numbering convention looks and how to compare it
tolerantly. SlashDateShape covers the common PREFIX SEQ/MM/YYYY form;
other conventions plug in by implementing InvoiceNumberShape.
"""

import re
from typing import Protocol

from app.matching.normalizers import digits_only

_SEP = r"[\/\\_.\-]"
_SEPS_RE = re.compile(r"[\s_.\-\/\\]+")

_SEQ_DATE_RE = re.compile(r"(?:^|[^\d])(\d{1,5})\s*%s\s*(\d{1,2})\s*%s\s*(\d{4})" % (_SEP, _SEP))
_SEQ_YEAR_RE = re.compile(r"(?:^|[^\d])(\d{1,5})\s*%s\s*\d{4}$" % _SEP)

_KNOWN_PREFIXES = ("INVOICE", "FAKTURA", "FAKT", "FAK", "INV", "FV", "FA", "PS", "F")
_PREFIX_STRIP_RE = re.compile(
    r"^(?:%s)[\s\-\/\\_.:;,]*" % "|".join(_KNOWN_PREFIXES), re.IGNORECASE
)
_KNOWN_PREFIX_WORD_RE = re.compile(r"\b(?:INV|PS|FV|FA|FAK|FAKT|FAKTURA)\b", re.IGNORECASE)
_LEADING_ALPHA_RE = re.compile(r"^\s*([A-Za-z]{1,8})")

# Ordered from most to least specific; duplicates are dropped by digit key.
# The first _PREFIXED_PATTERNS entries require an invoice prefix.
_EXTRACT_PATTERNS = [
    # INV/27/12/2025, INV/PS 69/11/2025, INV/PS 6 9/11/2025
    (re.compile(
        r"\bINV[\s\/\\_.\-]*(?:PS\s*)?[\d\s]{1,6}\s*%s\s*\d{1,2}\s*%s\s*\d{2,4}\b" % (_SEP, _SEP),
        re.IGNORECASE), 0),
    # PS 123/12/2025, PS123/12/2025, PS 123_12_2025
    (re.compile(
        r"\b(?:FAKTURA|FAKT|FAK|FV|FA|PS|F)\s*[\d\s]{1,6}\s*%s\s*\d{1,2}\s*%s\s*\d{2,4}\b" % (_SEP, _SEP),
        re.IGNORECASE), 0),
    # FV/2024/001, FV-2024-001
    (re.compile(r"\b(?:FAKTURA|FAKT|FAK|FV|FA|F)%s?\d{2,4}%s\d{1,5}\b" % (_SEP, _SEP), re.IGNORECASE), 0),
    # Bare 27/12/2025
    (re.compile(r"(?:^|[^\d])(\d{1,5}\s*%s\s*\d{1,2}\s*%s\s*\d{2,4})(?=[^\d]|$)" % (_SEP, _SEP)), 1),
    # Bare 001/2024
    (re.compile(r"\b\d{1,5}%s\d{2,4}\b" % _SEP), 0),
]
_PREFIXED_PATTERNS = 3


class InvoiceNumberShape(Protocol):
    """A numbering convention the scorer can compare tolerantly."""

    def normalize_text(self, text: str) -> str:
        """Undo bank-introduced whitespace inside invoice numbers."""

    def extract_all(self, text: str) -> list[str]:
        """Every substring of text that looks like an invoice number."""

    def canonical(self, invoice_number: str) -> str:
        """Separator-free uppercase form used for exact comparison."""

    def structural_key(self, invoice_number: str) -> str | None:
        """Fixed-width key of the structured part, None if not structured."""

    def cited_keys(self, text: str) -> list[str]:
        """Structural keys of the numbers text cites with an invoice prefix."""

    def prefix(self, invoice_number: str) -> str | None:
        """Alphabetic prefix of the number, if any."""

    def match(self, invoice_number: str, text: str) -> float:
        """Similarity of an invoice number and a text, 0.0-1.0."""


class SlashDateShape:
    """PREFIX SEQ/MM/YYYY numbers, e.g. "PS 17/12/2025"."""

    def normalize_text(self, text: str) -> str:
        if not text:
            return ""
        # "PS 1 7/12/2025" -> "PS 17/12/2025"
        text = re.sub(r"(\d)\s+(?=\d)", r"\1", text)
        # "17/12/ 2025" -> "17/12/2025"
        text = re.sub(r"(%s)\s+(?=\d)" % _SEP, r"\1", text)
        # "17 /12" -> "17/12"
        return re.sub(r"(\d)\s+(?=%s)" % _SEP, r"\1", text)

    def extract_all(self, text: str) -> list[str]:
        if not text:
            return []
        found: list[str] = []
        for pattern, group in _EXTRACT_PATTERNS:
            for match in pattern.finditer(text):
                found.append(match.group(group).strip())

        unique: list[str] = []
        seen: set[str] = set()
        for candidate in found:
            # "6 9" and "69" are the same number
            key = digits_only(candidate)
            if len(key) >= 3 and key not in seen:
                seen.add(key)
                unique.append(candidate)
        return unique

    def canonical(self, invoice_number: str) -> str:
        return _SEPS_RE.sub("", (invoice_number or "").upper())

    def sequence_number(self, invoice_number: str) -> str | None:
        """Sequence digits: "PS 37/12/2025" -> "37", "123/2025" -> "123"."""
        if not invoice_number:
            return None
        match = _SEQ_DATE_RE.search(invoice_number)
        if match:
            return match.group(1)
        match = _SEQ_YEAR_RE.search(invoice_number)
        if match:
            return match.group(1)
        return None

    def date_part(self, invoice_number: str) -> str | None:
        """Month and year: "PS 123/11/2025" -> "11/2025"."""
        if not invoice_number:
            return None
        match = _SEQ_DATE_RE.search(invoice_number)
        if not match:
            return None
        return "%s/%s" % (match.group(2), match.group(3))

    def structural_key(self, invoice_number: str) -> str | None:
        # Zero-padding keeps "7/12/2025" from being a substring of "37/12/2025"
        if not invoice_number:
            return None
        match = _SEQ_DATE_RE.search(invoice_number)
        if not match:
            return None
        seq, month, year = match.groups()
        return "%s%s%s" % (seq.zfill(5), month.zfill(2), year)

    def cited_keys(self, text: str) -> list[str]:
        keys: list[str] = []
        for pattern, group in _EXTRACT_PATTERNS[:_PREFIXED_PATTERNS]:
            for match in pattern.finditer(text or ""):
                key = self.structural_key(match.group(group))
                if key and key not in keys:
                    keys.append(key)
        return keys

    def prefix(self, invoice_number: str) -> str | None:
        match = _LEADING_ALPHA_RE.match(invoice_number or "")
        return match.group(1).upper() if match else None

    def strip_prefixes(self, text: str) -> str:
        return _SEPS_RE.sub("", _PREFIX_STRIP_RE.sub("", (text or "").upper().strip()))

    def pattern(self, invoice_number: str) -> re.Pattern:
        """Regex accepting any separator or spacing between the number's parts."""
        parts = [re.escape(p) for p in _SEPS_RE.split(invoice_number.strip()) if p]
        return re.compile(r"[\s\/\\_.\-]*".join(parts), re.IGNORECASE)

    def match(self, invoice_number: str, text: str) -> float:
        if not invoice_number or not text:
            return 0.0

        invoice_key = self.structural_key(invoice_number)
        text_key = self.structural_key(text)
        if invoice_key and text_key:
            # A prefixed citation outranks a bare run such as a transfer date
            cited = self.cited_keys(text)
            if cited:
                return 1.0 if invoice_key in cited else 0.0
            return 1.0 if invoice_key == text_key else 0.0

        # Exact comparisons only: "37122025" contains "7122025"
        if self.canonical(invoice_number) == self.canonical(text):
            return 1.0
        if self.strip_prefixes(invoice_number) == self.strip_prefixes(text):
            return 0.98

        invoice_digits = digits_only(invoice_number)
        text_digits = digits_only(text)
        if len(invoice_digits) < 3:
            return 0.0
        if invoice_digits == text_digits:
            return 0.95 if _KNOWN_PREFIX_WORD_RE.search(text) else 0.85

        if self.pattern(invoice_number).search(text):
            return 0.9

        if len(invoice_digits) >= 4:
            invoice_seq = self.sequence_number(invoice_number)
            text_seq = self.sequence_number(text)
            invoice_date = self.date_part(invoice_number)
            text_date = self.date_part(text)
            if invoice_seq and text_seq and invoice_date and text_date:
                if invoice_seq == text_seq and invoice_date == text_date:
                    return 0.8
                return 0.0
            if invoice_seq and text_seq:
                return 0.5 if invoice_seq == text_seq else 0.0
            head = invoice_digits[:-6]
            if head and text_digits.startswith(head):
                return 0.4

        return 0.0


DEFAULT_SHAPE = SlashDateShape()
