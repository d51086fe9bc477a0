import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import docker

from dispatcher.meta import ExecutionRequest
from runner.native import CommandResult


@dataclass
class DockerBehavior:
    output: bytes = b""
    exit_code: int = 0
    # block wait/log stream until the container is stopped or removed
    hang: bool = False
    fail_on: Optional[str] = None
    # the daemon no longer knows the container
    gone: bool = False
    clients: list = field(default_factory=list)

    @property
    def client(self):
        return self.clients[-1]


class DummyStream:

    def __init__(self, chunks, hang, released):
        self.chunks = list(chunks)
        self.hang = hang
        self.released = released

    def __iter__(self):
        return self

    def __next__(self):
        if self.chunks:
            return self.chunks.pop(0)
        if self.hang:
            self.released.wait(10)
        raise StopIteration

    def close(self):
        self.released.set()


def make_dummy_client(behavior: DockerBehavior):

    class DummyClient:

        def __init__(self, base_url=None, **kwargs):
            self.base_url = base_url
            self.host_config = None
            self.container_kwargs = None
            self.staged = {}
            self.started = False
            self.stopped = False
            self.removed = False
            self.removed_refs = []
            self.closed = False
            self.released = threading.Event()
            behavior.clients.append(self)

        def _maybe_fail(self, name):
            if behavior.fail_on == name:
                raise docker.errors.APIError(f"{name} failed")

        def create_host_config(self, **kwargs):
            self.host_config = kwargs
            return kwargs

        def create_container(self, **kwargs):
            self.container_kwargs = kwargs
            self._maybe_fail("create_container")
            # snapshot staged files, they are gone after the run
            self.staged = {
                source: Path(source).read_text()
                for source in kwargs["host_config"]["binds"]
            }
            return {"Id": "dummy-container"}

        def start(self, container):
            self._maybe_fail("start")
            self.started = True

        def wait(self, container, timeout=None):
            if behavior.hang:
                self.released.wait(timeout)
            return {"StatusCode": behavior.exit_code}

        def logs(self, container, stdout=True, stderr=True, stream=False,
                 follow=False):
            self._maybe_fail("logs")
            if stream:
                chunks = [behavior.output] if behavior.output else []
                return DummyStream(chunks, behavior.hang, self.released)
            return behavior.output

        def stop(self, container, timeout=None):
            self.stopped = True
            self.released.set()

        def remove_container(self, container, v=False, force=False):
            if behavior.gone:
                raise docker.errors.NotFound(f"no such container: {container}")
            self.removed = True
            self.removed_refs.append(container)
            self.released.set()

        def close(self):
            self.closed = True
            self.released.set()

    return DummyClient


class DummyToolchain:

    def __init__(
        self,
        available=True,
        init=None,
        run=None,
        error=None,
    ):
        self.available = available
        self.init = init or CommandResult(0, "", "", 5)
        self.run = run or CommandResult(0, "[]", "", 5)
        self.error = error
        self.checked = False
        self.harness = None
        self.workspace = None

    async def is_available(self):
        self.checked = True
        return self.available

    async def init_module(self, workspace, deadline):
        self.workspace = workspace
        return self.init

    async def build_and_run(self, workspace, deadline):
        if self.error is not None:
            raise self.error
        self.harness = (workspace / "main.go").read_text()
        return self.run


def make_request(
    language,
    code="",
    test_cases=None,
    function_name="add",
    parameter_types=None,
    execution_id="exec-1",
) -> ExecutionRequest:
    return ExecutionRequest.model_validate({
        "code": code,
        "language": language,
        "testCases": test_cases or [{
            "input": [1, 2],
            "expected": 3,
        }],
        "metadata": {
            "functionName": function_name,
            "parameterTypes": parameter_types or [],
            "returnType": "int",
        },
        "executionId": execution_id,
    })
