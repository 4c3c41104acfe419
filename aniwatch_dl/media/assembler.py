"""
Concatenates downloaded segments into a single video file with ffmpeg.
"""

import asyncio
import contextlib
import logging
import os
import shutil
from typing import List, Optional, Sequence

from aniwatch_dl.exceptions import AssemblyError, DependencyError

log = logging.getLogger(__name__)

CONCAT_LIST_NAME = "segments.txt"
FFMPEG_LOG_NAME = "ffmpeg.log"


def find_ffmpeg() -> str:
    """
    Locates the ffmpeg executable on PATH.

    Raises:
        DependencyError: If ffmpeg is not installed.
    """
    path = shutil.which("ffmpeg")
    if not path:
        raise DependencyError(
            "ffmpeg was not found on PATH. Install it to assemble episodes."
        )
    return path


def partial_output_path(output_path: str) -> str:
    """Temporary sibling path written by ffmpeg before the final rename."""
    root, _ = os.path.splitext(output_path)
    return f"{root}.part.mp4"


def write_concat_list(workspace: str, segment_paths: Sequence[str]) -> str:
    """Writes the ffmpeg concat demuxer list and returns its path."""
    list_path = os.path.join(workspace, CONCAT_LIST_NAME)
    with open(list_path, "w", encoding="utf-8") as f:
        for path in segment_paths:
            name = os.path.relpath(path, workspace).replace("'", r"'\''")
            f.write(f"file '{name}'\n")
    return list_path


class Assembler:
    """Runs ffmpeg in concat mode inside an episode workspace."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or "ffmpeg"

    def build_command(self, title: str, number: str, output_path: str) -> List[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-nostdin",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            CONCAT_LIST_NAME,
            "-metadata",
            f"title={title}",
            "-metadata",
            f"track={number}",
            "-c",
            "copy",
            output_path,
        ]

    async def _run(self, command: List[str], workspace: str, log_path: str) -> int:
        with open(log_path, "wb") as log_file:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=workspace,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
            )
            try:
                return await process.wait()
            except BaseException:
                # Never leave ffmpeg writing into a workspace that is being removed
                if process.returncode is None:
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()
                raise

    async def assemble(
        self,
        segment_paths: Sequence[str],
        title: str,
        number: str,
        output_path: str,
    ) -> None:
        """
        Joins ``segment_paths`` (in order) into ``output_path``.

        The segments must live in a common workspace directory, where the
        concat list and the ffmpeg log are written. Either the complete file
        exists at ``output_path`` afterwards or nothing does.

        Raises:
            AssemblyError: If ffmpeg fails or produces no output.
        """
        if not segment_paths:
            raise AssemblyError("No segments to assemble.")

        workspace = os.path.dirname(os.path.abspath(segment_paths[0]))
        write_concat_list(workspace, segment_paths)
        log_path = os.path.join(workspace, FFMPEG_LOG_NAME)

        final_path = os.path.abspath(output_path)
        temp_path = partial_output_path(final_path)
        os.makedirs(os.path.dirname(final_path), exist_ok=True)

        log.info("    Assembling with ffmpeg...")
        command = self.build_command(title, number, temp_path)
        log.debug(f"ffmpeg command: {' '.join(command)}")

        try:
            return_code = await self._run(command, workspace, log_path)
        except OSError as e:
            _discard(temp_path)
            raise AssemblyError(f"Could not start ffmpeg: {e}") from e
        except BaseException:
            _discard(temp_path)
            raise

        if return_code != 0 or not os.path.isfile(temp_path):
            _discard(temp_path)
            self._report_log(log_path)
            raise AssemblyError(
                f"ffmpeg assembly failed (exit code {return_code}). Log: {log_path}"
            )

        try:
            os.replace(temp_path, final_path)
        except OSError as e:
            _discard(temp_path)
            raise AssemblyError(f"Could not move assembled file into place: {e}") from e

        log.info(f"    [green]✓ Assembled:[/green] {os.path.basename(final_path)}")

    @staticmethod
    def _report_log(log_path: str) -> None:
        try:
            with open(log_path, encoding="utf-8", errors="replace") as f:
                log.debug(f"ffmpeg output:\n{f.read()}")
        except OSError:
            log.debug(f"No ffmpeg log available at {log_path}")


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
