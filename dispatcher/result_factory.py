"""
Factory functions for creating standardized execution results.

Every path that ends an execution builds its report through here so the
length, order and ``success`` invariants hold in one place:
- Case results (one per test case)
- Submission-wide failures (the same error for every case)
- The final submission result with its metrics
"""

from typing import Any, Optional, Sequence

from .meta import ExecutionResult, Metrics, SubmissionResult, TestCase

PARSE_FAILURE_MESSAGE = ('Failed to parse test results. '
                         'Check your code for syntax errors or infinite loops.')
MISSING_RESULT_MESSAGE = 'No result was reported for this test case'


def make_case_result(
    passed: bool,
    error: Optional[str] = None,
    actual: Any = None,
    expected: Any = None,
    exec_time: float = 0,
) -> ExecutionResult:
    """
    Build a single case result.

    Args:
        passed: Whether the case passed
        error: Human readable failure message
        actual: Value returned by the user's function
        expected: Value the test case expects
        exec_time: Execution time in ms

    Returns:
        Case result
    """
    return ExecutionResult(
        passed=passed,
        error=error,
        actual=actual,
        expected=expected,
        executionTime=exec_time,
        memoryUsed=0,
    )


def make_all_cases_result(
    test_cases: Sequence[TestCase],
    error: str,
    exec_time: float = 0,
) -> list[ExecutionResult]:
    """
    Build results for all cases of a submission (used for submission-wide
    failures such as compile errors or timeouts).

    Args:
        test_cases: Test cases of the submission
        error: Error message to include in all cases
        exec_time: Execution time reported for each case in ms

    Returns:
        One failing result per test case, in order
    """
    return [
        make_case_result(
            passed=False,
            error=error,
            expected=case.expected,
            exec_time=exec_time,
        ) for case in test_cases
    ]


def make_submission_result(
        results: Sequence[ExecutionResult],
        total_time: float = 0) -> SubmissionResult:
    passed = sum(1 for r in results if r.passed)
    return SubmissionResult(
        success=passed == len(results),
        results=list(results),
        metrics=Metrics(
            totalTime=total_time,
            totalMemory=0,
            passedTests=passed,
            totalTests=len(results),
        ),
    )


def make_failed_submission(
    test_cases: Sequence[TestCase],
    error: str,
    total_time: float = 0,
) -> SubmissionResult:
    per_case = total_time / len(test_cases) if test_cases else 0
    return make_submission_result(
        make_all_cases_result(test_cases, error, per_case),
        total_time,
    )


def make_timeout_submission(
    test_cases: Sequence[TestCase],
    error: str,
    timeout_ms: int,
) -> SubmissionResult:
    # every case reports the whole budget
    return make_submission_result(
        make_all_cases_result(test_cases, error, timeout_ms),
        timeout_ms,
    )
