"""Helpers for running external media commands from explicit argument lists."""
import subprocess
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

from loguru import logger

STDERR_TAIL_LINES = 200

StderrLineCallback = Callable[[str], None]


def _succeeded(returncode: int) -> bool:
    return returncode == 0


@dataclass(frozen=True)
class CommandSpec:
    """A program plus its ordered arguments. Never passed through a shell."""

    program: str
    args: Tuple[str, ...] = ()
    cwd: Optional[str] = None
    success: Callable[[int], bool] = field(default=_succeeded, compare=False)

    @classmethod
    def from_argv(cls, argv: Sequence[str], cwd: Optional[str] = None) -> "CommandSpec":
        argv = [str(part) for part in argv]
        return cls(program=argv[0], args=tuple(argv[1:]), cwd=cwd)

    @property
    def argv(self) -> list:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class CommandResult:
    command: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    ok: bool


def run_command(spec: CommandSpec, on_stderr_line: Optional[StderrLineCallback] = None) -> CommandResult:
    """
    Run `spec` to completion.

    Without a callback stdout and stderr are captured separately.
    With a callback stderr is streamed line by line (ffmpeg's carriage-return
    progress updates count as lines) and only its tail is kept; stdout is
    discarded since ffmpeg writes nothing there when the output is a file.
    """
    logger.info(f"Running: {spec}")
    started = time.monotonic()

    if on_stderr_line is None:
        completed = subprocess.run(
            spec.argv,
            cwd=spec.cwd,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
        )
        return CommandResult(
            command=tuple(spec.argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=time.monotonic() - started,
            ok=spec.success(completed.returncode),
        )

    tail = deque(maxlen=STDERR_TAIL_LINES)
    process = subprocess.Popen(
        spec.argv,
        cwd=spec.cwd,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        universal_newlines=True,
        encoding='utf-8',
        errors='replace',
    )
    try:
        for line in process.stderr:
            line = line.strip()
            if not line:
                continue
            tail.append(line)
            on_stderr_line(line)
        process.wait()
    finally:
        if process.poll() is None:
            process.kill()
            process.wait()
        process.stderr.close()

    return CommandResult(
        command=tuple(spec.argv),
        returncode=process.returncode,
        stdout="",
        stderr="\n".join(tail),
        duration=time.monotonic() - started,
        ok=spec.success(process.returncode),
    )
