"""
Subtitle Parser: reads SRT back into cues.
"""
from typing import List
import re
from captioner.models.schemas import SubtitleCue

TIMESTAMP_PATTERN = re.compile(r'(?:(\d{2,}):)?(\d{2}):(\d{2})[,.](\d{3})')


class SubtitleParser:
    @staticmethod
    def timestamp_to_seconds(h: str, m: str, s: str, ms: str) -> float:
        hours = int(h) if h else 0
        return hours * 3600 + int(m) * 60 + int(s) + int(ms) / 1000

    @staticmethod
    def parse_srt(srt_content: str) -> List[SubtitleCue]:
        """Parse SRT content into SubtitleCue list. Malformed blocks are skipped."""
        cues = []
        content = srt_content.replace('\r\n', '\n').strip()
        if not content:
            return cues
        blocks = re.split(r'\n\s*\n', content)

        for block in blocks:
            lines = block.strip().split('\n')
            if len(lines) < 3:
                continue

            times = TIMESTAMP_PATTERN.findall(lines[1])
            if len(times) != 2:
                continue

            start = SubtitleParser.timestamp_to_seconds(*times[0])
            end = SubtitleParser.timestamp_to_seconds(*times[1])
            text = '\n'.join(lines[2:]).strip()
            if not text or end <= start:
                continue

            try:
                index = int(lines[0].strip())
            except ValueError:
                index = len(cues) + 1

            cues.append(SubtitleCue(
                index=index,
                text=text,
                start=start,
                end=end,
                duration_seconds=end - start,
            ))

        return cues
