"""Segment construction and rendering for transcript segments.

Providers that only return word timings (Amazon Transcribe, AssemblyAI) go
through `group_words` so every row of the matrix is segmented the same way.
"""

import logging
from typing import Iterable, Sequence

from transcript_matrix.domain.models import TranscriptSegment, Word

logger = logging.getLogger(__name__)

DEFAULT_WORDS_PER_SEGMENT = 10

SENTENCE_TERMINATORS = (".", "!", "?")


def _flush(words: list[Word]) -> TranscriptSegment:
    return TranscriptSegment(
        start=words[0].start,
        end=max(words[-1].end, words[0].start),
        text=" ".join(w.text for w in words),
    )


def group_words(words: Iterable[Word], max_words: int = DEFAULT_WORDS_PER_SEGMENT) -> list[TranscriptSegment]:
    """Group consecutive words into sentence-like segments.

    A segment is closed when it holds `max_words` words or when its last word
    ends with terminal punctuation, whichever comes first. Whatever is left
    when the input runs out becomes the final segment.
    """
    if max_words < 1:
        raise ValueError(f"max_words must be >= 1, got {max_words}")

    segments: list[TranscriptSegment] = []
    pending: list[Word] = []

    for word in words:
        pending.append(word)
        if len(pending) >= max_words or word.text.rstrip().endswith(SENTENCE_TERMINATORS):
            segments.append(_flush(pending))
            pending = []

    if pending:
        segments.append(_flush(pending))

    return segments


def render_raw_text(segments: Sequence[TranscriptSegment]) -> str:
    """Plain-text transcript: one segment per line."""
    return "\n".join(seg.text.strip() for seg in segments).strip()


def slice_paragraphs(text: str, duration: float, slice_seconds: float = 10.0) -> list[TranscriptSegment]:
    """Fallback segmentation when a provider returns text without timings.

    Each non-empty paragraph gets the next `slice_seconds` window, capped at
    the audio duration.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    segments: list[TranscriptSegment] = []
    current = 0.0
    for paragraph in paragraphs:
        end = min(current + slice_seconds, duration) if duration > 0 else current + slice_seconds
        end = max(end, current)
        segments.append(TranscriptSegment(start=current, end=end, text=paragraph))
        current = end
    logger.debug(f"Sliced {len(paragraphs)} paragraphs into timed segments")
    return segments
