"""Chapter extraction and overlapping character-window chunking.

Pure functions, no I/O. Lengths are counted in Python str code points, so a
multi-byte character is never split.
"""

import re

from shared.models.book import Chapter, Chunk

CHUNK_SIZE = 2000       # characters per chunk
CHUNK_OVERLAP = 400     # characters shared by consecutive chunks of a chapter

_HEADING_RE = re.compile(r"^#{1,2}\s+(\S.*)$")


def _match_heading(line: str) -> str | None:
    match = _HEADING_RE.match(line.rstrip("\r"))
    if not match:
        return None
    return match.group(1).strip()


def extract_chapters(text: str) -> list[Chapter]:
    """Split markdown body text into chapters at level-1 and level-2 headings.

    Text before the first heading becomes an untitled chapter (only if it is
    not blank). A heading with no text after it still yields a chapter. Input
    without any heading yields exactly one untitled chapter holding the whole
    text.

    Args:
        text (str): The markdown body, front-matter already removed.

    Returns:
        list[Chapter]: Chapters in source order.
    """
    chapters: list[Chapter] = []
    current_title: str | None = None
    current_lines: list[str] = []

    for line in text.split("\n"):
        heading = _match_heading(line)
        if heading is None:
            current_lines.append(line)
            continue
        current_text = "\n".join(current_lines).strip()
        if current_text or current_title is not None:
            chapters.append(Chapter(title=current_title, text=current_text))
        current_title = heading
        current_lines = []

    current_text = "\n".join(current_lines).strip()
    if current_text or current_title is not None:
        chapters.append(Chapter(title=current_title, text=current_text))

    if not chapters:
        chapters.append(Chapter(title=None, text=text))
    return chapters


def split_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """Split a text into overlapping windows.

    The start advances by chunk_size - overlap; the loop stops as soon as a
    window reaches the end of the text, so only the last window can be short.

    Args:
        text (str): The text to split.
        chunk_size (int): Window length in characters.
        overlap (int): Characters shared by consecutive windows.

    Returns:
        list[str]: Ordered windows, empty for blank text.
    """
    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")
    if not text.strip():
        return []
    windows: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        windows.append(text[start:end])
        if end >= len(text):
            break
        start += chunk_size - overlap
    return windows


def chunk_chapters(chapters: list[Chapter]) -> list[Chunk]:
    """Chunk every chapter independently; no chunk spans two chapters.

    Args:
        chapters (list[Chapter]): Output of extract_chapters().

    Returns:
        list[Chunk]: Chunks in chapter order, chunk_index restarting at 0 per chapter.
    """
    chunks: list[Chunk] = []
    for chapter_idx, chapter in enumerate(chapters):
        for chunk_index, window in enumerate(split_text(chapter.text)):
            chunks.append(
                Chunk(
                    chapter_idx=chapter_idx,
                    chapter_title=chapter.title,
                    chunk_index=chunk_index,
                    text=window,
                )
            )
    return chunks
