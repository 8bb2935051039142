"""
Sweep stale job artifacts.

Jobs that never reach a terminal state (e.g. the server was killed mid-encode)
leave their uploads, subtitles and palettes behind. This removes files in the
working directories older than --max-age-hours. Final outputs are only swept
with --include-outputs.
"""
import argparse
import time

from loguru import logger

from captioner.config import settings
from captioner.services.artifact_cleaner import ArtifactCleaner


def find_stale(directories, max_age_seconds: float, now: float = None):
    now = time.time() if now is None else now
    for directory in directories:
        if not directory.exists():
            continue
        for item in directory.glob("*"):
            if item.is_file() and now - item.stat().st_mtime > max_age_seconds:
                yield item


def clean(max_age_hours: float = 24.0, include_outputs: bool = False, dry_run: bool = False) -> int:
    directories = [settings.UPLOAD_DIR, settings.SUBTITLE_DIR, settings.PREVIEW_DIR]
    if include_outputs:
        directories.append(settings.OUTPUT_DIR)

    cleaner = ArtifactCleaner(retries=1)
    count = 0
    size_freed = 0
    for item in find_stale(directories, max_age_hours * 3600):
        size = item.stat().st_size
        if dry_run:
            logger.info(f"Would delete {item} ({size} bytes)")
            continue
        if cleaner.delete(str(item)):
            count += 1
            size_freed += size

    logger.info(f"Deleted {count} files, freed {size_freed / 1024 / 1024:.2f} MB")
    return count


def main():
    parser = argparse.ArgumentParser(description="Delete stale caption job artifacts")
    parser.add_argument("--max-age-hours", type=float, default=24.0)
    parser.add_argument("--include-outputs", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    clean(args.max_age_hours, args.include_outputs, args.dry_run)


if __name__ == "__main__":
    main()
