from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from ..errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner(Protocol):
    """The only way stages reach external OS utilities."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input_text: Optional[str] = None,
    ) -> CmdResult:
        ...


class SubprocessRunner:
    """Run commands as subprocesses with consistent logging.

    - argv is passed straight to exec (never through a shell).
    - stdout/stderr are captured and attached to CommandError on failure.
    """

    def __init__(self, *, env: Mapping[str, str] | None = None, timeout_s: float | None = None):
        self.env = dict(env or {})
        self.timeout_s = timeout_s

    async def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input_text: Optional[str] = None,
    ) -> CmdResult:
        argv_list = [str(a) for a in argv]
        logger.info("CMD %s", fmt_argv(argv_list))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv_list,
                stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(os.environ, **self.env),
            )
        except OSError as e:
            # Missing binary, permission denied: same contract as a failed command.
            raise CommandError(argv_list, 127, "", str(e)) from e

        data = input_text.encode("utf-8") if input_text is not None else None
        try:
            out, err = await asyncio.wait_for(proc.communicate(data), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandError(argv_list, -9, "", f"timed out after {self.timeout_s}s")

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")

        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())

        returncode = proc.returncode if proc.returncode is not None else -1
        if check and returncode != 0:
            raise CommandError(argv_list, returncode, stdout, stderr)

        return CmdResult(argv=argv_list, returncode=returncode, stdout=stdout, stderr=stderr)
