import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional
import docker
from docker.errors import DockerException, NotFound
from dispatcher.config import ExecutorConfig
from dispatcher.exception import (
    EnvironmentLifecycleError,
    ExecutionTimeoutError,
)
from dispatcher.utils import logger, preview
from runner.deadline import Deadline


@dataclass
class ContainerSpec:
    name: str
    image: str
    command: list[str]
    binds: dict = field(default_factory=dict)
    working_dir: str = "/code"
    # follow the log stream to its end instead of waiting for exit
    follow_logs: bool = False


@dataclass
class ContainerRun:
    output: str
    exit_code: Optional[int]
    duration_ms: float


class ContainerLifecycleManager:
    """
    Run one command in a disposable, network-less, resource capped
    container and make sure the container is gone afterwards.
    """

    def __init__(self, cfg: ExecutorConfig):
        self.cfg = cfg

    def _client(self) -> docker.APIClient:
        return docker.APIClient(base_url=self.cfg.dockerUrl)

    def _create(self, client: docker.APIClient, spec: ContainerSpec):
        host_config = client.create_host_config(
            binds=spec.binds,
            network_mode="none",
            mem_limit=self.cfg.memoryLimit,
            memswap_limit=self.cfg.memoryLimit,
            cpu_quota=self.cfg.cpuQuota,
            pids_limit=self.cfg.pidsLimit,
            cap_drop=["ALL"],
            security_opt=["no-new-privileges"],
        )
        return client.create_container(
            image=spec.image,
            command=spec.command,
            name=spec.name,
            working_dir=spec.working_dir,
            network_disabled=True,
            host_config=host_config,
        )

    async def run(self, spec: ContainerSpec, deadline: Deadline) -> ContainerRun:
        client = None
        container = None
        try:
            client = await asyncio.to_thread(self._client)
            container = await asyncio.to_thread(self._create, client, spec)
            await asyncio.to_thread(client.start, container)
            logger().info(f"container started. [name={spec.name}]")
            collect = (self._follow(client, container)
                       if spec.follow_logs else self._wait_then_read(
                           client, container, deadline))
            try:
                raw, exit_code = await asyncio.wait_for(
                    collect, deadline.remaining())
            except asyncio.TimeoutError:
                logger().info(f"container timed out. [name={spec.name}]")
                raise ExecutionTimeoutError(deadline.timeout_ms) from None
        except (DockerException, OSError) as e:
            raise EnvironmentLifecycleError(
                f"Execution environment failure: {e}") from e
        finally:
            await asyncio.shield(self._teardown(client, container, spec))
        output = raw.decode("utf-8", "ignore")
        logger().debug(f"container output [name={spec.name}]: "
                       f"{preview(output)}")
        return ContainerRun(
            output=output,
            exit_code=exit_code,
            duration_ms=deadline.elapsed_ms(),
        )

    async def _stream_logs(self, client, container) -> AsyncIterator[bytes]:
        """
        Pull chunks of combined stdout/stderr until the stream ends.
        """
        stream = await asyncio.to_thread(
            client.logs,
            container,
            stdout=True,
            stderr=True,
            stream=True,
            follow=True,
        )
        try:
            while True:
                chunk = await asyncio.to_thread(next, stream, None)
                if chunk is None:
                    return
                yield chunk
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    async def _follow(self, client, container) -> tuple[bytes, Optional[int]]:
        chunks = []
        async with contextlib.aclosing(self._stream_logs(
                client, container)) as stream:
            async for chunk in stream:
                chunks.append(chunk)
        return b"".join(chunks), None

    async def _wait_then_read(
        self,
        client,
        container,
        deadline: Deadline,
    ) -> tuple[bytes, Optional[int]]:
        # the container is kept after exit, so logs are still readable here
        exit_status = await asyncio.to_thread(
            client.wait,
            container,
            timeout=max(1, int(deadline.remaining()) + 1),
        )
        raw = await asyncio.to_thread(
            client.logs,
            container,
            stdout=True,
            stderr=True,
        )
        status_code = exit_status.get("StatusCode") if exit_status else None
        return raw, status_code

    async def _teardown(self, client, container, spec: ContainerSpec):
        if client is None:
            return
        try:
            # without a handle the container may still exist under its name
            await asyncio.to_thread(
                self._remove, client,
                container if container is not None else spec.name, spec)
        finally:
            await asyncio.to_thread(client.close)

    def _remove(self, client, container, spec: ContainerSpec):
        for action, kwargs in (
            (client.stop, {"timeout": 1}),
            (client.remove_container, {"v": True, "force": True}),
        ):
            try:
                action(container, **kwargs)
            except NotFound:
                logger().debug(f"container already removed. [name={spec.name}]")
                return
            except (DockerException, OSError) as e:
                logger().warning(f"failed to clean up {spec.name}: {e}")
        logger().info(f"container removed. [name={spec.name}]")
