import asyncio
import sys
import time

from runner import native
from runner.deadline import Deadline
from runner.native import (
    MODULE_INIT_TIMEOUT_MS,
    TIMEOUT_EXIT_CODE,
    CommandResult,
    NativeToolchain,
    run_command,
)


def test_run_command_collects_output(tmp_path):
    result = asyncio.run(
        run_command(
            [
                sys.executable, '-c',
                'import os, sys; print(os.getcwd()); '
                'print("oops", file=sys.stderr); sys.exit(3)'
            ],
            Deadline(10000),
            cwd=tmp_path,
        ))

    assert result.exit_code == 3
    assert result.stdout.strip() == str(tmp_path)
    assert result.stderr.strip() == 'oops'
    assert not result.timed_out
    assert not result.ok


def test_run_command_kills_on_timeout():
    started = time.monotonic()
    result = asyncio.run(
        run_command(
            [sys.executable, '-c', 'import time; time.sleep(30)'],
            Deadline(300),
        ))

    assert time.monotonic() - started < 10
    assert result.timed_out
    assert result.exit_code == TIMEOUT_EXIT_CODE
    assert 'timed out after 300ms' in result.stderr
    assert not result.ok


def test_missing_toolchain_is_unavailable():
    toolchain = NativeToolchain('definitely-not-a-go-binary')
    assert asyncio.run(toolchain.is_available()) is False


def test_failing_version_check_is_unavailable(tmp_path):
    fake_go = tmp_path / 'go'
    fake_go.write_text('#!/bin/sh\necho broken >&2\nexit 1\n')
    fake_go.chmod(0o755)
    assert asyncio.run(NativeToolchain(str(fake_go)).is_available()) is False


def test_isolated_env_scopes_caches(tmp_path):
    env = NativeToolchain().isolated_env(tmp_path)

    assert env['GOCACHE'] == str(tmp_path / '.gocache')
    assert env['GOPATH'] == str(tmp_path / '.gopath')
    assert env['CGO_ENABLED'] == '0'
    assert env['GO111MODULE'] == 'on'
    assert 'PATH' in env


def test_module_init_budget_is_capped(tmp_path, monkeypatch):
    calls = []

    async def fake_run_command(args, deadline, cwd=None, env=None):
        calls.append((args, deadline, cwd))
        return CommandResult(0, '', '', 1)

    monkeypatch.setattr(native, 'run_command', fake_run_command)
    toolchain = NativeToolchain()
    asyncio.run(toolchain.init_module(tmp_path, Deadline(60000)))
    asyncio.run(toolchain.build_and_run(tmp_path, Deadline(60000)))

    (init_args, init_deadline, init_cwd), (run_args, run_deadline, _) = calls
    assert init_args == ['go', 'mod', 'init', 'solution']
    assert init_cwd == tmp_path
    assert init_deadline.timeout_ms <= MODULE_INIT_TIMEOUT_MS
    assert run_args == ['go', 'run', 'main.go']
    assert run_deadline.timeout_ms > MODULE_INIT_TIMEOUT_MS
