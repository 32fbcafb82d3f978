"""External verifier subprocess adapter.

Runs the configured verifier executable against a project workspace as an
async subprocess, with timeout enforcement and output streaming to the log.

The verifier is invoked as:

    <command> --project <name> --issue <number> --workspace <path>

and must print its result as a single JSON object on the last non-empty
line of stdout, e.g.:

    {"status": "passed", "build_success": true, "tests_passed": true,
     "mocks_detected": false, "summary": "All checks passed"}

Any other outcome (timeout, missing executable, non-zero exit, unparsable
output) raises VerificationError.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import ValidationError

from supervisor.verification.models import VerificationError, VerificationResult

logger = logging.getLogger(__name__)

# Per-line read buffer; a single result line with details can be large
STREAM_LIMIT = 16 * 1024 * 1024


class CommandVerificationRunner:
    """VerificationRunner backed by an external executable.

    Attributes:
        command: Path to the verifier executable.
        timeout_seconds: Maximum run time before the process is killed.
    """

    def __init__(self, command: str, timeout_seconds: int = 1800):
        self.command = command
        self.timeout_seconds = timeout_seconds

    async def run_verification(
        self,
        project_name: str,
        issue_number: int,
        workspace_root: Path,
    ) -> VerificationResult:
        """Run the verifier for a project issue.

        Args:
            project_name: Project to verify.
            issue_number: Issue the work was done for.
            workspace_root: The project's workspace directory.

        Returns:
            The parsed VerificationResult.

        Raises:
            VerificationError: If the verifier cannot produce a result.
        """
        start_time = time.monotonic()

        try:
            process = await self._start_process(
                project_name, issue_number, workspace_root
            )
        except OSError as exc:
            logger.error("Failed to start verifier: %s", exc)
            raise VerificationError(f"Failed to start verifier: {exc}") from exc

        try:
            stdout_lines, stderr_lines = await self._collect_output_with_timeout(
                process
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "Verifier timed out after %ds",
                self.timeout_seconds,
                extra={"project_name": project_name, "issue_number": issue_number},
            )
            raise VerificationError(
                f"Verifier timed out after {self.timeout_seconds}s",
                exit_code=-1,
            ) from exc
        except ValueError as exc:
            # readline raises ValueError for a line over the stream limit
            logger.error(
                "Failed to read verifier output: %s",
                exc,
                extra={"project_name": project_name, "issue_number": issue_number},
            )
            raise VerificationError(
                f"Failed to read verifier output: {exc}"
            ) from exc
        finally:
            await self._reap(process)

        exit_code = process.returncode or 0
        duration = time.monotonic() - start_time

        if exit_code != 0:
            tail = "\n".join(stderr_lines[-20:])
            logger.error(
                "Verifier failed with exit code %d in %.1fs",
                exit_code,
                duration,
            )
            raise VerificationError(
                f"Verifier exited with code {exit_code}: {tail[:500]}",
                exit_code=exit_code,
            )

        result = self._parse_result(stdout_lines)
        logger.info(
            "Verifier completed with status %s in %.1fs",
            result.status.value,
            duration,
        )
        return result

    async def _start_process(
        self, project_name: str, issue_number: int, workspace_root: Path
    ) -> asyncio.subprocess.Process:
        logger.info(
            "Starting verifier",
            extra={
                "project_name": project_name,
                "issue_number": issue_number,
                "workspace": str(workspace_root),
                "timeout": self.timeout_seconds,
            },
        )

        return await asyncio.create_subprocess_exec(
            self.command,
            "--project",
            project_name,
            "--issue",
            str(issue_number),
            "--workspace",
            str(workspace_root),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )

    async def _collect_output_with_timeout(
        self, process: asyncio.subprocess.Process
    ) -> Tuple[List[str], List[str]]:
        """Stream and collect process output within the timeout window.

        Raises:
            asyncio.TimeoutError: If the process exceeds the timeout.
        """
        stdout_lines: List[str] = []
        stderr_lines: List[str] = []

        async def stream(
            reader: Optional[asyncio.StreamReader],
            sink: List[str],
            name: str,
        ) -> None:
            async for line in self._read_stream(reader):
                sink.append(line)
                logger.debug("verifier %s: %s", name, line)

        async def run() -> None:
            await asyncio.gather(
                stream(process.stdout, stdout_lines, "stdout"),
                stream(process.stderr, stderr_lines, "stderr"),
            )
            await process.wait()

        await asyncio.wait_for(run(), timeout=self.timeout_seconds)
        return stdout_lines, stderr_lines

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        """Kill the verifier if it is still running and wait for it to exit."""
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()

    async def _read_stream(self, stream: Optional[asyncio.StreamReader]):
        """Yield decoded lines from an async stream."""
        if stream is None:
            return

        while True:
            raw_line = await stream.readline()
            if not raw_line:
                break
            yield raw_line.decode("utf-8", errors="replace").rstrip("\n")

    def _parse_result(self, stdout_lines: List[str]) -> VerificationResult:
        """Parse the JSON result from the last non-empty stdout line.

        Raises:
            VerificationError: If there is no parsable result.
        """
        lines = [line for line in stdout_lines if line.strip()]
        if not lines:
            raise VerificationError("Verifier produced no output")

        try:
            return VerificationResult.model_validate(json.loads(lines[-1]))
        except (ValueError, ValidationError) as exc:
            raise VerificationError(
                f"Could not parse verifier result: {exc}"
            ) from exc

