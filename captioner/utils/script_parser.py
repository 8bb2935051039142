"""
Script Parser: turns a plain-text script into back-to-back subtitle cues.

One cue per non-blank line. Each cue lasts
    base_duration_seconds + word_count * per_word_seconds
and starts exactly where the previous one ended.
"""
from typing import List

from loguru import logger

from captioner.core.errors import EmptyScript
from captioner.models.schemas import ProcessingOptions, SubtitleCue


def count_words(text: str) -> int:
    return len(text.split())


def cue_duration(text: str, options: ProcessingOptions) -> float:
    return options.base_duration_seconds + count_words(text) * options.per_word_seconds


def parse_script(script_text: str, options: ProcessingOptions) -> List[SubtitleCue]:
    lines = [line.strip() for line in (script_text or "").splitlines()]
    lines = [line for line in lines if line]

    if not lines:
        raise EmptyScript()

    cues: List[SubtitleCue] = []
    current_time = 0.0
    for i, text in enumerate(lines):
        duration = cue_duration(text, options)
        end = current_time + duration
        cues.append(SubtitleCue(
            index=i + 1,
            text=text,
            start=current_time,
            end=end,
            duration_seconds=duration,
        ))
        current_time = end

    logger.info(f"Parsed script into {len(cues)} cues ({current_time:.2f}s total)")
    return cues


def script_duration(cues: List[SubtitleCue]) -> float:
    return cues[-1].end if cues else 0.0
