import asyncio
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from dispatcher.utils import logger
from runner.deadline import Deadline

TIMEOUT_EXIT_CODE = 124
VERSION_CHECK_TIMEOUT_MS = 5000
MODULE_INIT_TIMEOUT_MS = 10000


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _kill_group(process: asyncio.subprocess.Process):
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


async def run_command(
    args: Sequence[str],
    deadline: Deadline,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    '''
    Run ``args`` until it exits or ``deadline`` expires. On expiry the whole
    process group is killed so compiler children die with it.
    '''
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(),
                                                deadline.remaining())
    except asyncio.TimeoutError:
        _kill_group(process)
        await process.wait()
        return CommandResult(
            exit_code=TIMEOUT_EXIT_CODE,
            stdout='',
            stderr=f'Command timed out after {deadline.timeout_ms}ms',
            duration_ms=deadline.elapsed_ms(),
            timed_out=True,
        )
    except asyncio.CancelledError:
        _kill_group(process)
        await asyncio.shield(process.wait())
        raise
    return CommandResult(
        exit_code=process.returncode,
        stdout=stdout.decode('utf-8', 'ignore'),
        stderr=stderr.decode('utf-8', 'ignore'),
        duration_ms=deadline.elapsed_ms(),
    )


class NativeToolchain:
    '''
    Go toolchain installed on the host.
    '''

    def __init__(self, executable: str = 'go'):
        self.executable = executable

    async def is_available(self) -> bool:
        try:
            result = await run_command(
                [self.executable, 'version'],
                Deadline(VERSION_CHECK_TIMEOUT_MS),
            )
        except OSError as e:
            logger().info(f'go toolchain check failed: {e}')
            return False
        if not result.ok:
            logger().info(f'go toolchain check failed: {result.stderr}')
            return False
        logger().debug(f'go toolchain: {result.stdout.strip()}')
        return True

    def isolated_env(self, workspace: Path) -> dict[str, str]:
        '''
        Environment with build caches scoped to ``workspace``.
        '''
        env = dict(os.environ)
        env.update({
            'GOCACHE': str(workspace / '.gocache'),
            'GOPATH': str(workspace / '.gopath'),
            'GO111MODULE': 'on',
            'CGO_ENABLED': '0',
            'GOPROXY': 'direct',
            'GOSUMDB': 'off',
        })
        return env

    async def init_module(self, workspace: Path,
                          deadline: Deadline) -> CommandResult:
        return await run_command(
            [self.executable, 'mod', 'init', 'solution'],
            deadline.budget(MODULE_INIT_TIMEOUT_MS),
            cwd=workspace,
            env=self.isolated_env(workspace),
        )

    async def build_and_run(self, workspace: Path,
                            deadline: Deadline) -> CommandResult:
        return await run_command(
            [self.executable, 'run', 'main.go'],
            deadline.budget(),
            cwd=workspace,
            env=self.isolated_env(workspace),
        )
