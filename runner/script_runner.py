import json
from pathlib import Path
from string import Template
from typing import Sequence

from dispatcher import file_manager
from dispatcher.constant import Language
from dispatcher.meta import ExecutionRequest, SubmissionResult, TestCase
from dispatcher.normalizer import normalize_json_lines
from dispatcher.utils import logger
from runner.base import BaseRunner
from runner.container import ContainerSpec
from runner.deadline import Deadline

TEMPLATE_PATH = Path(__file__).with_name('templates') / 'script_driver.ts'
DRIVER_TARGET = '/code/solution.ts'
TS_COMPILER_OPTIONS = {
    'module': 'CommonJS',
    'moduleResolution': 'node',
    'target': 'ES2020',
    'strict': False,
    'esModuleInterop': True,
    'allowSyntheticDefaultImports': True,
}


def serialize_test_cases(test_cases: Sequence[TestCase]) -> str:
    return json.dumps(
        [
            case.model_dump(include={'input', 'expected', 'description'})
            for case in test_cases
        ],
        ensure_ascii=False,
        indent=2,
    )


def render_driver(request: ExecutionRequest, nonce: str) -> str:
    template = Template(TEMPLATE_PATH.read_text())
    return template.substitute(
        user_code=request.code,
        test_cases=serialize_test_cases(request.testCases),
        function_name=request.metadata.functionName,
        record_nonce=nonce,
    )


class ScriptRunner(BaseRunner):
    '''
    Run TypeScript/JavaScript through a generated driver with ts-node.
    '''
    kind = 'ts'

    def command(self) -> list[str]:
        return [
            'ts-node',
            '--transpile-only',
            '--compiler-options',
            json.dumps(TS_COMPILER_OPTIONS, separators=(',', ':')),
            DRIVER_TARGET,
        ]

    async def _execute(
        self,
        request: ExecutionRequest,
        workspace: Path,
        deadline: Deadline,
    ) -> SubmissionResult:
        nonce = self.record_nonce()
        driver = file_manager.write_text(workspace, 'solution.ts',
                                         render_driver(request, nonce))
        spec = ContainerSpec(
            name=self.container_name(request),
            image=self.cfg.image_for(Language.SCRIPT),
            command=self.command(),
            binds=self.translator.read_only_binds({driver: DRIVER_TARGET}),
            follow_logs=True,
        )
        logger().debug(f'run script driver [id={request.executionId}]')
        run = await self.lifecycle.run(spec, deadline)
        return normalize_json_lines(run.output, request.testCases,
                                    run.duration_ms, nonce)
