from functools import lru_cache
from typing import Dict, Optional, Tuple


class VerseCache:
    """
    In-memory cache for verse lookups.

    Verse text is keyed by the trimmed reference string (exact case). Chapter
    lengths live in a separate mapping keyed by (book, chapter), so a
    reference string can never collide with a chapter-length entry. Entries
    are never evicted; clear() exists for tests.
    """

    def __init__(self):
        self._verses: Dict[str, str] = {}
        self._chapter_lengths: Dict[Tuple[str, int], int] = {}

    @staticmethod
    def normalize(reference: str) -> str:
        return reference.strip()

    def get_verse(self, reference: str) -> Optional[str]:
        return self._verses.get(self.normalize(reference))

    def set_verse(self, reference: str, text: str) -> None:
        self._verses[self.normalize(reference)] = text

    def get_chapter_length(self, book: str, chapter: int) -> Optional[int]:
        return self._chapter_lengths.get((book.strip(), int(chapter)))

    def set_chapter_length(self, book: str, chapter: int, length: int) -> None:
        self._chapter_lengths[(book.strip(), int(chapter))] = int(length)

    def clear(self) -> None:
        self._verses.clear()
        self._chapter_lengths.clear()

    def __len__(self) -> int:
        return len(self._verses) + len(self._chapter_lengths)


# Process-wide cache instance shared by all fetchers
@lru_cache(maxsize=1)
def get_verse_cache() -> VerseCache:
    return VerseCache()
