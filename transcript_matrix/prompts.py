"""Prompts shared by the analysis and transcription adapters."""

import json
from typing import Sequence

from transcript_matrix.domain.models import TranscriptSegment

LESSON_SYSTEM_PROMPT = """You need to create a lesson from the content that the user sends you.
The lesson must be generated in the SAME LANGUAGE as the transcription content (do not translate, use the original language).
The lesson should contain the following:
1) 2-7 memory cards (each description must be between 40 to 150 characters)
2) 1-3 quiz cards with varied questions
3) 1 Open-Ended Question Card
4) The lesson must have a title and description, which you must fill out in lessonInfo section and must reflect the overall essence of our lesson

Your answer must be structured exactly in JSON format. Do not include any additional text or formatting."""

TRANSCRIBE_PROMPT = """Please transcribe this audio file with precise timestamps.

The audio duration is approximately {duration} seconds.

Please format the transcription with timestamps in the following JSON format:
[
    {{"start": 0.0, "end": 2.5, "text": "Hello, this is the beginning of the transcript."}},
    {{"start": 2.5, "end": 5.0, "text": "This is the next segment with more speech."}}
]

Make sure to include:
1. Start time in seconds for each segment
2. End time in seconds for each segment
3. Transcribed text for each segment

Divide the text into logical segments (like sentences or phrases).
Aim for segments of around 5-10 seconds each."""


def transcript_json(segments: Sequence[TranscriptSegment]) -> str:
    return json.dumps(
        [{"start": s.start, "end": s.end, "text": s.text} for s in segments],
        ensure_ascii=False,
    )


def lesson_request(segments: Sequence[TranscriptSegment]) -> str:
    """User-turn text asking for a lesson built from the transcript."""
    return f"Create a lesson based on this video content:\nTranscription: {transcript_json(segments)}"


def transcribe_request(duration: float) -> str:
    return TRANSCRIBE_PROMPT.format(duration=round(duration))
