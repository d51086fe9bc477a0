import time
from pathlib import Path
from typing import Any, Optional, Sequence
from runner.base import BaseRunner
from runner.compiled_runner import CompiledRunner
from runner.native import NativeToolchain
from runner.script_runner import ScriptRunner
from runner.server_side_runner import ServerSideRunner
from . import config
from .constant import Language
from .meta import (
    ExecutionRequest,
    FunctionMetadata,
    SubmissionResult,
    TestCase,
)
from .utils import logger


class Dispatcher:
    '''
    Entry point of the execution engine. Picks the runner of the request's
    language; everything else happens in the runner.
    '''

    def __init__(
        self,
        executor_config: str | Path | config.ExecutorConfig | None = None,
        toolchain: Optional[NativeToolchain] = None,
    ):
        if isinstance(executor_config, config.ExecutorConfig):
            self.cfg = executor_config
        else:
            self.cfg = config.get_executor_config(executor_config)
        self.runners: dict[Language, BaseRunner] = {
            Language.SCRIPT: ScriptRunner(self.cfg),
            Language.COMPILED: CompiledRunner(self.cfg, toolchain),
            Language.SERVER_SIDE: ServerSideRunner(self.cfg),
        }
        logger().info(
            f'dispatcher ready. [timeout={self.cfg.timeoutMs}ms, '
            f'memory={self.cfg.memoryLimit}, '
            f'staging={self.cfg.stagingDir}, '
            f'native_go={self.cfg.useNativeCompiled}]')

    def build_request(
        self,
        code: str,
        test_cases: Sequence[TestCase | dict[str, Any]],
        metadata: FunctionMetadata | dict[str, Any],
        language: Language | str,
        execution_id: Optional[str] = None,
    ) -> ExecutionRequest:
        '''
        Validate raw arguments into a request.

        Raises:
            UnsupportedLanguageError: the language is not one of the runners
            pydantic.ValidationError: any other malformed field
        '''
        payload = {
            'code': code,
            'language': Language.parse(language),
            'testCases': list(test_cases),
            'metadata': metadata,
        }
        if execution_id is not None:
            payload['executionId'] = execution_id
        return ExecutionRequest.model_validate(payload)

    async def execute(
        self,
        code: str,
        test_cases: Sequence[TestCase | dict[str, Any]],
        metadata: FunctionMetadata | dict[str, Any],
        language: Language | str,
        execution_id: Optional[str] = None,
    ) -> SubmissionResult:
        request = self.build_request(code, test_cases, metadata, language,
                                     execution_id)
        return await self.handle(request)

    async def handle(self, request: ExecutionRequest) -> SubmissionResult:
        runner = self.runners[request.language]
        logger().info(f'execute {request.language.value} submission '
                      f'[id={request.executionId}, '
                      f'cases={len(request.testCases)}]')
        started = time.monotonic()
        result = await runner.run(request)
        logger().info(
            f'finish {request.executionId}: '
            f'{result.metrics.passedTests}/{result.metrics.totalTests} passed '
            f'in {(time.monotonic() - started) * 1000:.0f}ms')
        return result
