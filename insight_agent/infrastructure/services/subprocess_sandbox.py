from typing import Optional
import asyncio
import sys

import structlog

from insight_agent.domain.tool.interfaces import CodeSandbox, ExecutionReport

logger = structlog.get_logger(__name__)


class SubprocessSandbox(CodeSandbox):
    """Runs code in a separate isolated interpreter process.

    The child runs with ``-I`` (no user site, no environment-driven paths) and
    is killed once `timeout` seconds have passed.
    """

    def __init__(self, timeout: float = 30.0, python_executable: Optional[str] = None, cwd: Optional[str] = None):
        self.timeout = timeout
        self.python_executable = python_executable or sys.executable
        self.cwd = cwd

    async def run(self, code: str) -> ExecutionReport:
        proc = await asyncio.create_subprocess_exec(
            self.python_executable, "-I", "-c", code,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
        )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Sandbox run timed out", timeout=self.timeout)
            return ExecutionReport(
                error=f"Execution timed out after {self.timeout:g} seconds",
                exit_code=proc.returncode,
                timed_out=True,
            )

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")

        error = None
        if proc.returncode != 0:
            error = err.strip() or f"Process exited with status {proc.returncode}"

        return ExecutionReport(stdout=out, stderr=err, error=error, exit_code=proc.returncode)
