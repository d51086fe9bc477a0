import secrets
from pathlib import Path

from dispatcher import file_manager
from dispatcher.config import ExecutorConfig
from dispatcher.exception import (
    ExecutionTimeoutError,
    SandboxError,
    StagingError,
)
from dispatcher.meta import ExecutionRequest, SubmissionResult
from dispatcher.result_factory import (
    make_failed_submission,
    make_timeout_submission,
)
from dispatcher.utils import logger
from runner.container import ContainerLifecycleManager
from runner.deadline import Deadline
from runner.path_utils import PathTranslator


class BaseRunner:
    '''
    Shared shape of the language runners: give every request its own
    workspace, run it under a deadline, and turn every execution failure
    into an all-failing result. Subclasses implement ``_execute``.
    '''
    kind = 'base'

    def __init__(self, cfg: ExecutorConfig):
        self.cfg = cfg
        self.lifecycle = ContainerLifecycleManager(cfg)
        self.translator = PathTranslator(cfg)

    @property
    def timeout_ms(self) -> int:
        return self.cfg.timeoutMs

    def container_name(self, request: ExecutionRequest) -> str:
        return f'{self.kind}-execution-{request.executionId}'

    def record_nonce(self) -> str:
        '''
        Fresh token the driver attaches to every result record, so lines the
        user code prints itself are not taken for results.
        '''
        return secrets.token_hex(16)

    async def run(self, request: ExecutionRequest) -> SubmissionResult:
        workspace = file_manager.create_workspace(self.cfg.stagingDir,
                                                  request.executionId)
        deadline = Deadline(self.timeout_ms)
        try:
            return await self._execute(request, workspace, deadline)
        except ExecutionTimeoutError as e:
            return make_timeout_submission(request.testCases, str(e),
                                           e.timeout_ms)
        except StagingError:
            raise
        except SandboxError as e:
            logger().info(f'{self.kind} execution failed ({e.kind.value}) '
                          f'[id={request.executionId}]: {e}')
            return make_failed_submission(request.testCases, str(e),
                                          deadline.elapsed_ms())
        except Exception as e:
            logger().error(
                f'unexpected {self.kind} failure [id={request.executionId}]',
                exc_info=True)
            return make_failed_submission(request.testCases,
                                          f'Execution failed: {e}',
                                          deadline.elapsed_ms())
        finally:
            file_manager.clean_data(workspace)

    async def _execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> SubmissionResult:
        raise NotImplementedError
