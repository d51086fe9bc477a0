import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dispatcher import file_manager
from dispatcher.config import ExecutorConfig
from dispatcher.constant import Backend, FailureKind, Language
from dispatcher.exception import (
    CompileError,
    GenericExecutionError,
    ModuleInitError,
    SandboxError,
    ToolchainUnavailableError,
)
from dispatcher.meta import ExecutionRequest, SubmissionResult
from dispatcher.normalizer import (
    BUILD_FAILURE,
    MODULE_INIT_FAILURE,
    RUNTIME_FAILURE,
    classify_failure,
    describe_failure,
    explain_failure,
    normalize_json_array,
    parse_json_array,
)
from dispatcher.result_factory import make_timeout_submission
from dispatcher.utils import logger, preview
from runner.base import BaseRunner
from runner.container import ContainerLifecycleManager, ContainerSpec
from runner.deadline import Deadline
from runner.harness import generate_harness
from runner.native import NativeToolchain
from runner.path_utils import PathTranslator

CODE_DIR = '/code'
# what go build prints, as opposed to a crash of the running program
_BUILD_OUTPUT = re.compile(r'^(# command-line-arguments|\./main\.go:\d+:\d+: )',
                           re.MULTILINE)


def run_failure(stderr: str) -> SandboxError:
    '''
    Error for a `go run` that exited non-zero without printing results.
    '''
    signature = classify_failure(stderr)
    if _BUILD_OUTPUT.search(stderr or '') or (
            signature is not None and signature.kind == FailureKind.COMPILE):
        return CompileError(explain_failure(stderr, BUILD_FAILURE))
    return GenericExecutionError(describe_failure(RUNTIME_FAILURE, stderr))


class NativeBackend:
    '''
    Build and run the generated harness with the Go toolchain of the host.
    '''

    def __init__(self, cfg: ExecutorConfig, toolchain: NativeToolchain):
        self.cfg = cfg
        self.toolchain = toolchain

    async def execute(self, request: ExecutionRequest) -> SubmissionResult:
        if not await self.toolchain.is_available():
            raise ToolchainUnavailableError(
                'go toolchain not available on the host')
        deadline = Deadline(self.cfg.nativeTimeoutMs)
        scratch = file_manager.create_workspace(
            self.cfg.stagingDir, f'native-{request.executionId}')
        try:
            file_manager.write_text(
                scratch,
                'main.go',
                generate_harness(request.code, request.testCases,
                                 request.metadata),
            )
            init = await self.toolchain.init_module(scratch, deadline)
            if init.timed_out:
                return make_timeout_submission(
                    request.testCases,
                    f'Module initialization timeout - {init.stderr}',
                    deadline.timeout_ms,
                )
            if not init.ok:
                raise ModuleInitError(
                    explain_failure(init.stderr, MODULE_INIT_FAILURE))
            run = await self.toolchain.build_and_run(scratch, deadline)
            if run.timed_out:
                return make_timeout_submission(
                    request.testCases,
                    f'Execution timeout - {run.stderr}',
                    deadline.timeout_ms,
                )
            logger().debug(f'native output [id={request.executionId}]: '
                           f'{preview(run.stdout)}')
            if not run.ok and parse_json_array(run.stdout) is None:
                raise run_failure(run.stderr)
            return normalize_json_array(run.stdout, request.testCases,
                                        run.duration_ms)
        finally:
            file_manager.clean_data(scratch)


class ContainerBackend:
    '''
    Run the precompiled go-executor image against the staged user code.
    '''

    def __init__(
        self,
        cfg: ExecutorConfig,
        lifecycle: ContainerLifecycleManager,
        translator: PathTranslator,
    ):
        self.cfg = cfg
        self.lifecycle = lifecycle
        self.translator = translator

    def stage(self, request: ExecutionRequest, workspace: Path) -> dict:
        code = file_manager.write_text(workspace, 'user-code.go',
                                       request.code)
        cases = file_manager.write_json(
            workspace,
            'test-cases.json',
            [
                case.model_dump(include={'input', 'expected', 'description'})
                for case in request.testCases
            ],
        )
        metadata = file_manager.write_json(workspace, 'metadata.json',
                                           request.metadata.model_dump())
        return {
            code: f'{CODE_DIR}/user-code.go',
            cases: f'{CODE_DIR}/test-cases.json',
            metadata: f'{CODE_DIR}/metadata.json',
        }

    async def execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> SubmissionResult:
        mounts = self.stage(request, workspace)
        spec = ContainerSpec(
            name=f'go-execution-{request.executionId}',
            image=self.cfg.image_for(Language.COMPILED),
            command=['go-executor', *mounts.values()],
            binds=self.translator.read_only_binds(mounts),
        )
        run = await self.lifecycle.run(spec, deadline)
        return normalize_json_array(run.output, request.testCases,
                                    run.duration_ms)


@dataclass
class BackendOutcome:
    backend: Backend
    result: SubmissionResult
    fallback_reason: Optional[str] = None


class NativeThenContainer:
    '''
    Try the native backend when it is preferred. Without that preference, or
    when the native attempt fails for any reason other than the user's code,
    run the container backend.
    '''

    def __init__(
        self,
        native: NativeBackend,
        container: ContainerBackend,
        prefer_native: bool,
    ):
        self.native = native
        self.container = container
        self.prefer_native = prefer_native

    async def execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> BackendOutcome:
        if not self.prefer_native:
            result = await self.container.execute(request, workspace,
                                                  deadline)
            return BackendOutcome(Backend.CONTAINER, result)
        try:
            result = await self.native.execute(request)
            return BackendOutcome(Backend.NATIVE, result)
        except (ModuleInitError, CompileError, GenericExecutionError):
            # errors in the user code end the execution on any backend
            raise
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger().warning(
                f'native go execution failed, use container instead '
                f'[id={request.executionId}]: {reason}')
        # the native attempt may have used up the shared budget
        result = await self.container.execute(
            request, workspace, Deadline(deadline.timeout_ms))
        return BackendOutcome(Backend.CONTAINER, result, reason)


class CompiledRunner(BaseRunner):
    kind = 'go'

    def __init__(
        self,
        cfg: ExecutorConfig,
        toolchain: Optional[NativeToolchain] = None,
    ):
        super().__init__(cfg)
        self.strategy = NativeThenContainer(
            native=NativeBackend(cfg, toolchain or NativeToolchain()),
            container=ContainerBackend(cfg, self.lifecycle,
                                       self.translator),
            prefer_native=cfg.useNativeCompiled,
        )

    async def _execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> SubmissionResult:
        outcome = await self.strategy.execute(request, workspace, deadline)
        logger().info(f'go execution done on {outcome.backend.value} '
                      f'backend [id={request.executionId}]')
        return outcome.result
