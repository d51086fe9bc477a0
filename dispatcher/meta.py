import re
import uuid
from typing import Any, List, Optional
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    conlist,
    field_validator,
)
from .constant import Language

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class TestCase(BaseModel):
    # challenge stores attach their own ids, drop them
    model_config = ConfigDict(extra='ignore', frozen=True)
    __test__ = False

    input: List[Any] = Field(default_factory=list)
    expected: Any = None
    description: Optional[str] = None


class FunctionMetadata(BaseModel):
    model_config = ConfigDict(extra='ignore', frozen=True)

    functionName: str
    parameterTypes: List[str] = Field(default_factory=list)
    returnType: str = 'interface{}'

    @field_validator('functionName')
    @classmethod
    def _validate_function_name(cls, v: str):
        v = v.strip()
        if not _IDENTIFIER.match(v):
            raise ValueError(f'invalid function name: {v!r}')
        return v

    def parameter_type(self, position: int) -> Optional[str]:
        if position < len(self.parameterTypes):
            return self.parameterTypes[position]
        return None


class ExecutionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    language: Language
    testCases: conlist(TestCase, min_length=1)
    metadata: FunctionMetadata
    executionId: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @field_validator('language', mode='before')
    @classmethod
    def _coerce_language(cls, v):
        return Language.parse(v)

    @field_validator('executionId')
    @classmethod
    def _validate_execution_id(cls, v: str):
        # used in file and container names
        if not re.match(r'^[A-Za-z0-9_.-]+$', v):
            raise ValueError(f'invalid execution id: {v!r}')
        return v


class ExecutionResult(BaseModel):
    passed: bool
    error: Optional[str] = None
    actual: Any = None
    expected: Any = None
    executionTime: float = 0
    memoryUsed: int = 0


class Metrics(BaseModel):
    totalTime: float = 0
    totalMemory: int = 0
    passedTests: int = 0
    totalTests: int = 0


class SubmissionResult(BaseModel):
    success: bool
    results: List[ExecutionResult]
    metrics: Metrics
