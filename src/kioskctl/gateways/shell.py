"""Single place for adb subprocess invocation.

Uses shell=False, list args, and controlled env. All bandit suppressions live here.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess  # nosec B404 - used with shell=False, list args, controlled env
from collections.abc import Callable, Sequence

from kioskctl.errors import GatewayError, GatewayErrorCode

_LOGGER = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], float], subprocess.CompletedProcess[str]]

_PERMISSION_MARKERS = ("SecurityException", "Permission Denial", "not allowed")
_UNSUPPORTED_MARKERS = (
    "Unknown command",
    "No shell command implementation",
    "Unknown option",
    "inaccessible or not found",
    "Can't find service",
)
_NOT_FOUND_MARKERS = ("does not exist", "Unable to resolve", "not found")


def minimal_env() -> dict[str, str]:
    """Minimal env for subprocess (PATH, plus adb's server socket vars).

    Returns:
        Dict suitable for passing to `run_subprocess`.
    """
    env = {"PATH": os.environ.get("PATH", "")}
    for key in ("HOME", "ANDROID_ADB_SERVER_PORT", "ADB_VENDOR_KEYS"):
        if key in os.environ:
            env[key] = os.environ[key]
    return env


def run_subprocess(
    argv: Sequence[str], timeout: float
) -> subprocess.CompletedProcess[str]:
    """Run a subprocess with shell=False, list args, and controlled env.

    Returncode is not checked; caller inspects result.returncode.

    Args:
        argv: Command and arguments as a list (no shell parsing).
        timeout: Timeout in seconds.

    Returns:
        CompletedProcess with stdout, stderr, returncode.
    """
    return subprocess.run(  # noqa: PLW1510  # nosec B603 - shell=False, list args, controlled env
        list(argv),
        env=minimal_env(),
        capture_output=True,
        text=True,
        timeout=timeout,
        shell=False,
    )


def classify_failure(output: str) -> GatewayErrorCode:
    """Map device command output to a stable gateway error code.

    Args:
        output: Combined stdout/stderr of a failed command.

    Returns:
        Best-matching gateway error code.
    """
    if any(marker in output for marker in _PERMISSION_MARKERS):
        return GatewayErrorCode.PERMISSION_DENIED
    if any(marker in output for marker in _UNSUPPORTED_MARKERS):
        return GatewayErrorCode.UNSUPPORTED
    if any(marker in output for marker in _NOT_FOUND_MARKERS):
        return GatewayErrorCode.NOT_FOUND
    return GatewayErrorCode.FAILED


class AdbShell:
    """Bounded `adb shell` command channel for one device."""

    def __init__(
        self,
        *,
        adb_path: str = "adb",
        serial: str | None = None,
        timeout_s: float = 15.0,
        runner: CommandRunner = run_subprocess,
    ) -> None:
        """Store adb invocation settings.

        Args:
            adb_path: adb executable.
            serial: Optional device serial passed as `-s`.
            timeout_s: Per-command timeout in seconds.
            runner: Subprocess runner; replaced in tests.
        """
        self._adb_path = adb_path
        self._serial = serial
        self._timeout_s = timeout_s
        self._runner = runner

    def argv(self, args: Sequence[str]) -> list[str]:
        """Build full adb argv for a device shell command.

        Args:
            args: Device-side command tokens.

        Returns:
            Host-side argv.
        """
        prefix = [self._adb_path]
        if self._serial:
            prefix += ["-s", self._serial]
        return [*prefix, "shell", shlex.join(args)]

    def run(self, *args: str) -> str:
        """Run one device shell command and return its stdout.

        Args:
            *args: Device-side command tokens.

        Returns:
            Command stdout.

        Raises:
            GatewayError: If adb is missing, times out, or the command fails.
        """
        argv = self.argv(args)
        command = " ".join(args)
        _LOGGER.debug("adb.run command=%s", command)
        try:
            result = self._runner(argv, self._timeout_s)
        except subprocess.TimeoutExpired as exc:
            raise GatewayError(
                GatewayErrorCode.TIMEOUT,
                f"adb command timed out after {self._timeout_s}s: {command}",
                data={"command": command},
            ) from exc
        except FileNotFoundError as exc:
            raise GatewayError(
                GatewayErrorCode.FAILED,
                f"adb executable not found: {self._adb_path}",
                data={"command": command},
            ) from exc
        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        if result.returncode != 0 or "Exception" in (result.stderr or ""):
            code = classify_failure(output)
            raise GatewayError(
                code,
                f"adb command failed ({result.returncode}): {command}",
                data={
                    "command": command,
                    "returncode": result.returncode,
                    "output": output.strip(),
                },
            )
        return result.stdout or ""
