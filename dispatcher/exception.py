from .constant import FailureKind

__all__ = [
    'SandboxError',
    'ToolchainUnavailableError',
    'ModuleInitError',
    'CompileError',
    'ExecutionTimeoutError',
    'EnvironmentLifecycleError',
    'GenericExecutionError',
    'StagingError',
    'UnsupportedLanguageError',
]


class SandboxError(Exception):
    '''
    Failure of one execution. Runners turn these into an all-failing
    submission result instead of letting them reach the caller.
    '''
    kind = FailureKind.GENERIC


class ToolchainUnavailableError(SandboxError):
    kind = FailureKind.TOOLCHAIN_UNAVAILABLE


class ModuleInitError(SandboxError):
    kind = FailureKind.MODULE_INIT


class CompileError(SandboxError):
    kind = FailureKind.COMPILE


class ExecutionTimeoutError(SandboxError):
    kind = FailureKind.TIMEOUT

    def __init__(self, timeout_ms: int):
        super().__init__(
            f'Execution timeout - took longer than {timeout_ms}ms')
        self.timeout_ms = timeout_ms


class EnvironmentLifecycleError(SandboxError):
    kind = FailureKind.LIFECYCLE


class GenericExecutionError(SandboxError):
    '''The user's program failed while running, outside any test case.'''
    kind = FailureKind.GENERIC


class StagingError(Exception):
    '''Raised when the working directory of an execution cannot be prepared.'''


class UnsupportedLanguageError(ValueError):
    pass
