from pathlib import Path

from dispatcher import file_manager
from dispatcher.constant import Language
from dispatcher.meta import ExecutionRequest, SubmissionResult
from dispatcher.normalizer import normalize_json_lines
from runner.base import BaseRunner
from runner.container import ContainerSpec
from runner.deadline import Deadline

DRIVER_PATH = Path(__file__).with_name('templates') / 'test_runner.php'
CODE_DIR = '/code'


class ServerSideRunner(BaseRunner):
    '''
    Run PHP. The user's file is staged untouched, next to a fixed driver
    that includes it and calls the target function for every test case.
    '''
    kind = 'php'

    def stage(self, request: ExecutionRequest, workspace: Path) -> dict:
        solution = file_manager.write_text(workspace, 'user-solution.php',
                                           request.code)
        cases = file_manager.write_json(
            workspace,
            'test-cases.json',
            [
                case.model_dump(include={'input', 'expected', 'description'})
                for case in request.testCases
            ],
        )
        driver = file_manager.copy_file(workspace, DRIVER_PATH,
                                        'test-runner.php')
        return {
            solution: f'{CODE_DIR}/user-solution.php',
            cases: f'{CODE_DIR}/test-cases.json',
            driver: f'{CODE_DIR}/test-runner.php',
        }

    async def _execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> SubmissionResult:
        mounts = self.stage(request, workspace)
        nonce = self.record_nonce()
        spec = ContainerSpec(
            name=self.container_name(request),
            image=self.cfg.image_for(Language.SERVER_SIDE),
            command=[
                'php',
                f'{CODE_DIR}/test-runner.php',
                request.metadata.functionName,
                nonce,
            ],
            binds=self.translator.read_only_binds(mounts),
            follow_logs=True,
        )
        run = await self.lifecycle.run(spec, deadline)
        return normalize_json_lines(run.output, request.testCases,
                                    run.duration_ms, nonce)
