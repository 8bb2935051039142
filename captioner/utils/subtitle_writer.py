"""
Subtitle Writer: SRT generation, timestamp formatting and libass style strings.
"""
from pathlib import Path
from typing import List, Union
from loguru import logger
from captioner.models.schemas import ProcessingOptions, SubtitleCue

# ASS numpad alignment: 8 = top-center, 5 = middle-center, 2 = bottom-center
ALIGNMENT_CODES = {"top": 8, "center": 5, "bottom": 2}


class SubtitleWriter:
    @staticmethod
    def format_timestamp(seconds: float) -> str:
        """Convert seconds to SRT timestamp format (HH:MM:SS,mmm)."""
        seconds = max(0.0, seconds)
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)
        millis = round((seconds - int(seconds)) * 1000)
        # Handle overflow from rounding up 999.5+
        if millis >= 1000:
            millis = 0
            secs += 1
            if secs >= 60:
                secs = 0
                minutes += 1
                if minutes >= 60:
                    minutes = 0
                    hours += 1
        return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Human display form: MM:SS, or HH:MM:SS past the hour."""
        total = int(max(0.0, seconds))
        hours, rest = divmod(total, 3600)
        minutes, secs = divmod(rest, 60)
        if hours > 0:
            return f"{hours:02d}:{minutes:02d}:{secs:02d}"
        return f"{minutes:02d}:{secs:02d}"

    @staticmethod
    def render_srt(cues: List[SubtitleCue]) -> str:
        blocks = []
        for cue in cues:
            start_str = SubtitleWriter.format_timestamp(cue.start)
            end_str = SubtitleWriter.format_timestamp(cue.end)
            blocks.append(f"{cue.index}\n{start_str} --> {end_str}\n{cue.text}\n")
        return "\n".join(blocks)

    @staticmethod
    def save_srt(cues: List[SubtitleCue], srt_path: Union[str, Path]) -> str:
        """Write cues as SRT, creating parent dirs. I/O errors propagate."""
        srt_path = Path(srt_path)
        srt_path.parent.mkdir(parents=True, exist_ok=True)
        srt_path.write_text(SubtitleWriter.render_srt(cues), encoding="utf-8")
        logger.info(f"Wrote {len(cues)} cues to {srt_path.name}")
        return str(srt_path)

    @staticmethod
    def hex_to_ass_color(hex_color: str) -> str:
        """
        '#RRGGBB' -> '&H00BBGGRR'.
        ASS stores colours as AABBGGRR with 00 meaning fully opaque.
        """
        digits = hex_color.strip().lstrip("#")
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        if len(digits) != 6:
            raise ValueError(f"Invalid hex colour: {hex_color}")
        rr, gg, bb = digits[0:2], digits[2:4], digits[4:6]
        return f"&H00{bb}{gg}{rr}".upper()

    @staticmethod
    def build_force_style(options: ProcessingOptions, font_name: str = "Arial") -> str:
        """force_style value for ffmpeg's subtitles filter."""
        bold = 1 if options.font_weight == "bold" else 0
        alignment = ALIGNMENT_CODES.get(options.position, 2)
        return (
            f"FontName={font_name},"
            f"FontSize={options.font_size_px},"
            f"PrimaryColour={SubtitleWriter.hex_to_ass_color(options.font_color)},"
            f"Bold={bold},"
            f"Alignment={alignment}"
        )
