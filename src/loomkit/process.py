"""Dev-server process lookup and termination by port."""

from __future__ import annotations

import os
import signal
import time
from dataclasses import dataclass

from . import exec as exec_util
from . import log
from .services.errors import ExternalCommandFailedError

DEV_SERVER_COMMANDS = frozenset(
    {"node", "npm", "npx", "yarn", "pnpm", "bun", "deno", "vite", "next", "python", "python3", "uvicorn"}
)


@dataclass(frozen=True)
class PortProcess:
    pid: int
    name: str

    @property
    def is_dev_server(self) -> bool:
        return self.name.lower() in DEV_SERVER_COMMANDS or self.name.lower().startswith("node")


def parse_lsof_fields(output: str) -> list[PortProcess]:
    """Parse ``lsof -F pc`` output into processes.

    Example:
        >>> parse_lsof_fields("p123\\ncnode\\np456\\ncpostgres\\n")
        [PortProcess(pid=123, name='node'), PortProcess(pid=456, name='postgres')]
    """
    processes: list[PortProcess] = []
    pid: int | None = None
    for line in output.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == "p" and value.isdigit():
            pid = int(value)
        elif tag == "c" and pid is not None:
            processes.append(PortProcess(pid=pid, name=value.strip()))
            pid = None
    return processes


class PortProcessManager:
    """``ProcessConnector`` backed by ``lsof`` and POSIX signals."""

    def __init__(
        self,
        *,
        runner: exec_util.CommandRunner | None = None,
        wait_seconds: float = 2.0,
        poll_interval: float = 0.1,
    ) -> None:
        self.runner = runner
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval

    def listeners(self, port: int) -> list[PortProcess]:
        result = exec_util.run_with_runner(
            exec_util.CommandRequest(
                argv=("lsof", "-nP", f"-iTCP:{port}", "-sTCP:LISTEN", "-F", "pc")
            ),
            runner=self.runner,
        )
        if result is None:
            raise ExternalCommandFailedError(exec_util.missing_command_detail(("lsof",)))
        # lsof exits 1 when nothing matches
        if not result.ok:
            return []
        return parse_lsof_fields(result.stdout)

    def _send(self, pid: int, sig: signal.Signals) -> None:
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            log.debug(f"process {pid} already exited")

    def stop_dev_server(self, port: int) -> bool:
        """Terminate the dev server listening on ``port``.

        Returns ``False`` when nothing (or nothing dev-server-like) listens.

        Raises:
            ExternalCommandFailedError: The port is still busy after SIGTERM.
        """
        processes = self.listeners(port)
        if not processes:
            log.debug(f"no process found on port {port}")
            return False
        servers = [process for process in processes if process.is_dev_server]
        if not servers:
            names = ", ".join(sorted({process.name for process in processes}))
            log.warning(f"process on port {port} ({names}) does not look like a dev server; skipping")
            return False

        for process in servers:
            log.info(f"Terminating dev server: {process.name} (PID: {process.pid})")
            self._send(process.pid, signal.SIGTERM)

        deadline = time.monotonic() + self.wait_seconds
        while time.monotonic() < deadline:
            if not self.listeners(port):
                return True
            time.sleep(self.poll_interval)
        if self.listeners(port):
            raise ExternalCommandFailedError(f"dev server may still be running on port {port}")
        return True
