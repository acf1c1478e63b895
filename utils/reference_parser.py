import re
from typing import List, Optional, Union
from dataclasses import dataclass

# Define data classes for parsed verse references and ranges
@dataclass(frozen=True)
class VerseReference:
    book: str
    chapter: int
    verse: int

    def __str__(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"

@dataclass(frozen=True)
class VerseRange:
    """Range inside a single chapter, e.g. John 3:16-18"""
    book: str
    chapter: int
    start_verse: int
    end_verse: int

    def to_references(self) -> List[str]:
        """Convert range to list of individual references"""
        references = []
        for verse_num in range(self.start_verse, self.end_verse + 1):
            references.append(f"{self.book} {self.chapter}:{verse_num}")
        return references

@dataclass(frozen=True)
class CrossChapterRange:
    """Range spanning chapters, e.g. John 3:16-4:2"""
    book: str
    start_chapter: int
    start_verse: int
    end_chapter: int
    end_verse: int

    @property
    def first_reference(self) -> str:
        return f"{self.book} {self.start_chapter}:{self.start_verse}"

    @property
    def last_reference(self) -> str:
        return f"{self.book} {self.end_chapter}:{self.end_verse}"

RangeSpec = Union[VerseRange, CrossChapterRange]

# Define the ReferenceParser class for recognizing scripture references
class ReferenceParser:
    """
    Recognizes scripture references inside free text and decomposes range strings.

    Book names are kept exactly as written ("1 John", "Gen."); no alias
    normalization happens here because the verse lookup service resolves
    abbreviations itself and cache keys must match the caller's text.
    """

    # Optional 1-3 prefix, book word/periods, then chapter:verse
    SINGLE_REFERENCE = re.compile(r'\b([1-3]?\s?[A-Za-z.]+\s+\d{1,3}:\d{1,3})\b')

    # Either "Book C:V-V" or "Book C:V-C:V" anywhere in a question
    RANGE_IN_TEXT = re.compile(
        r'\b([1-3]?\s?[A-Za-z.]+\s+\d{1,3}:\d{1,3}\s*-\s*(?:\d{1,3}:\d{1,3}|\d{1,3}))\b'
    )

    SAME_CHAPTER_RANGE = re.compile(r'^([1-3]?\s?[A-Za-z.]+)\s+(\d+):(\d+)\s*-\s*(\d+)$')
    CROSS_CHAPTER_RANGE = re.compile(r'^([1-3]?\s?[A-Za-z.]+)\s+(\d+):(\d+)\s*-\s*(\d+):(\d+)$')

    REFERENCE_PARTS = re.compile(r'^(.+?)\s+(\d+):(\d+)$')

    def extract_first_reference(self, text: Optional[str]) -> Optional[VerseReference]:
        """
        Find the first single-verse reference in text, e.g. 'John 3:16' in
        'Explain John 3:16 please'. Only the first match is considered.
        """
        if not text:
            return None

        match = self.SINGLE_REFERENCE.search(text)
        if not match:
            return None

        parts = self.REFERENCE_PARTS.match(match.group(1).strip())
        if not parts:
            return None

        return VerseReference(
            book=parts.group(1).strip(),
            chapter=int(parts.group(2)),
            verse=int(parts.group(3)),
        )

    def find_range_reference(self, text: Optional[str]) -> Optional[str]:
        """Return the first range-looking substring of a question, trimmed"""
        if not text:
            return None
        match = self.RANGE_IN_TEXT.search(text)
        return match.group(1).strip() if match else None

    def parse_range(self, text: Optional[str]) -> Optional[RangeSpec]:
        """
        Parse a range string. Same-chapter grammar is tried first, then
        cross-chapter. Inverted or malformed ranges return None rather than
        raising: callers fall back to fetching the input as one passage.
        """
        if not text:
            return None
        candidate = text.strip()

        match = self.SAME_CHAPTER_RANGE.match(candidate)
        if match:
            book = match.group(1).strip()
            chapter = int(match.group(2))
            start_verse = int(match.group(3))
            end_verse = int(match.group(4))

            if start_verse > end_verse:
                return None

            return VerseRange(
                book=book,
                chapter=chapter,
                start_verse=start_verse,
                end_verse=end_verse,
            )

        match = self.CROSS_CHAPTER_RANGE.match(candidate)
        if match:
            book = match.group(1).strip()
            start_chapter = int(match.group(2))
            start_verse = int(match.group(3))
            end_chapter = int(match.group(4))
            end_verse = int(match.group(5))

            in_order = start_chapter < end_chapter or (
                start_chapter == end_chapter and start_verse <= end_verse
            )
            if not in_order:
                return None

            return CrossChapterRange(
                book=book,
                start_chapter=start_chapter,
                start_verse=start_verse,
                end_chapter=end_chapter,
                end_verse=end_verse,
            )

        return None

    def is_range_reference(self, text: Optional[str]) -> bool:
        """Check if the text is a valid, non-inverted range"""
        return self.parse_range(text) is not None
