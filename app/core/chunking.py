"""Overlapping window chunking for knowledge ingestion."""

from typing import Any

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


def chunk_text(
    text: str,
    max_chars: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[dict[str, Any]]:
    """
    Split text into fixed-size windows that overlap their neighbours.

    A sentence cut by one window edge still appears whole in the adjacent
    window as long as it is shorter than ``overlap``. The final window may
    be shorter than ``max_chars``. Windows advance by ``max_chars - overlap``
    and stop once the end of the text is reached, so every character index
    is covered by at least one chunk.

    Args:
        text: Text to chunk
        max_chars: Window size in characters
        overlap: Characters shared by consecutive windows

    Returns:
        List of chunk dicts with chunk_index, total_chunks, content,
        start_char and end_char

    Raises:
        ValueError: If max_chars <= overlap or overlap < 0
    """
    if overlap < 0:
        raise ValueError(f"overlap ({overlap}) must not be negative")
    if max_chars <= overlap:
        raise ValueError(f"max_chars ({max_chars}) must be greater than overlap ({overlap})")

    if not text:
        return []

    step = max_chars - overlap
    text_length = len(text)
    windows: list[tuple[int, int]] = []

    start = 0
    while True:
        end = min(start + max_chars, text_length)
        windows.append((start, end))
        if end >= text_length:
            break
        start += step

    total = len(windows)
    return [
        {
            "chunk_index": index,
            "total_chunks": total,
            "content": text[start:end],
            "start_char": start,
            "end_char": end,
        }
        for index, (start, end) in enumerate(windows)
    ]
