import json
from typing import Any, Iterable, NamedTuple, Optional, Sequence

from .constant import FailureKind
from .meta import ExecutionResult, SubmissionResult, TestCase
from .result_factory import (
    MISSING_RESULT_MESSAGE,
    PARSE_FAILURE_MESSAGE,
    make_case_result,
    make_failed_submission,
    make_submission_result,
)
from .utils import logger, preview


class FailureSignature(NamedTuple):
    kind: FailureKind
    message: str


TOOLCHAIN_UNAVAILABLE = FailureSignature(
    FailureKind.TOOLCHAIN_UNAVAILABLE,
    'Language toolchain is not available in the execution environment.',
)
MISSING_RETURN = FailureSignature(
    FailureKind.COMPILE,
    'Function is missing return statement. '
    'Make sure your function returns a value.',
)
SYNTAX_ERROR = FailureSignature(
    FailureKind.COMPILE,
    'Syntax error in your code. Please check your code for errors.',
)
MODULE_INIT_FAILURE = FailureSignature(
    FailureKind.MODULE_INIT,
    'Module initialization failed before your code could be built.',
)
BUILD_FAILURE = FailureSignature(
    FailureKind.COMPILE,
    'Compilation failed. Please check your code for errors.',
)
RUNTIME_FAILURE = FailureSignature(
    FailureKind.GENERIC,
    'Your code crashed while running.',
)

# checked in order, first match wins
_SIGNATURES = [
    (('executable file not found', 'command not found',
      'toolchain not available'), TOOLCHAIN_UNAVAILABLE),
    (('missing return', ), MISSING_RETURN),
    (('syntax error', 'syntaxerror', 'parse error'), SYNTAX_ERROR),
    (('go mod init', 'module initialization failed'), MODULE_INIT_FAILURE),
    (('build failed', 'compilation failed', 'execution_error:'),
     BUILD_FAILURE),
]
_DETAIL_LIMIT = 1000


def classify_failure(text: str) -> Optional[FailureSignature]:
    '''
    Match raw output against known failure signatures.
    '''
    lowered = (text or '').lower()
    for needles, signature in _SIGNATURES:
        if any(needle in lowered for needle in needles):
            return signature
    return None


def describe_failure(signature: FailureSignature, text: str) -> str:
    detail = (text or '').strip()
    if not detail:
        return signature.message
    if len(detail) > _DETAIL_LIMIT:
        detail = detail[:_DETAIL_LIMIT] + '...'
    return f'{signature.message}\n{detail}'


def explain_failure(text: str, default: FailureSignature) -> str:
    return describe_failure(classify_failure(text) or default, text)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(actual: Any, expected: Any) -> bool:
    '''
    Canonical deep equality for judging results.

    Numbers compare by value regardless of int/float representation, but
    booleans are never numbers. Sequences compare element-wise in order,
    mappings by key set and per-key value regardless of key order.
    '''
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(
            expected, bool) and actual == expected
    if isinstance(actual, (list, tuple)) and isinstance(
            expected, (list, tuple)):
        return len(actual) == len(expected) and all(
            values_equal(a, e) for a, e in zip(actual, expected))
    if isinstance(actual, dict) and isinstance(expected, dict):
        return actual.keys() == expected.keys() and all(
            values_equal(actual[k], expected[k]) for k in actual)
    if isinstance(actual, (list, tuple, dict)) or isinstance(
            expected, (list, tuple, dict)):
        return False
    return actual == expected


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def judge_record(
    record: dict,
    case: TestCase,
    exec_time: float,
) -> ExecutionResult:
    '''
    Turn one record printed by a driver into a result. The driver's own
    ``passed`` flag is not trusted, the verdict is recomputed here.
    '''
    actual = record.get('actual', record.get('output'))
    error = record.get('error') or None
    if error is not None and not isinstance(error, str):
        error = _dump(error)
    passed = error is None and values_equal(actual, case.expected)
    if not passed and error is None:
        error = f'Expected {_dump(case.expected)} but got {_dump(actual)}'
    return make_case_result(
        passed=passed,
        error=error,
        actual=actual,
        expected=case.expected,
        exec_time=exec_time,
    )


def _record_index(record: dict, position: int) -> Optional[int]:
    index = record.get('index', position)
    if isinstance(index, bool) or not isinstance(index, int):
        return None
    return index


def assemble_results(
    records: Iterable[dict],
    test_cases: Sequence[TestCase],
    elapsed_ms: float,
) -> SubmissionResult:
    '''
    Map records back to test cases by index. Cases without a record get a
    synthetic failure so the result list always matches the test cases.
    '''
    per_case = elapsed_ms / len(test_cases) if test_cases else 0
    by_index: dict[int, dict] = {}
    for position, record in enumerate(records):
        index = _record_index(record, position)
        if index is None or not 0 <= index < len(test_cases):
            logger().debug(f'drop record with bad index: {record!r}')
            continue
        # last record of an index wins
        by_index[index] = record
    results = []
    for i, case in enumerate(test_cases):
        record = by_index.get(i)
        if record is None:
            results.append(
                make_case_result(
                    passed=False,
                    error=MISSING_RESULT_MESSAGE,
                    expected=case.expected,
                    exec_time=per_case,
                ))
        else:
            results.append(judge_record(record, case, per_case))
    return make_submission_result(results, elapsed_ms)


def unparsable_output(
    raw: str,
    test_cases: Sequence[TestCase],
    elapsed_ms: float,
) -> SubmissionResult:
    signature = classify_failure(raw)
    if signature is None:
        logger().info(f'{FailureKind.OUTPUT_PARSE.value}: {preview(raw)}')
        return make_failed_submission(test_cases, PARSE_FAILURE_MESSAGE,
                                      elapsed_ms)
    logger().info(f'classified failure {signature.kind.value}')
    return make_failed_submission(
        test_cases,
        describe_failure(signature, raw),
        elapsed_ms,
    )


def parse_json_lines(raw: str) -> list[dict]:
    '''
    Pick one json object out of every output line. Anything around the
    outermost braces (interpreter banners, warnings) is ignored.
    '''
    records = []
    for line in raw.splitlines():
        start = line.find('{')
        end = line.rfind('}')
        if start == -1 or end <= start:
            continue
        try:
            record = json.loads(line[start:end + 1])
        except json.JSONDecodeError:
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


def parse_json_array(raw: str) -> Optional[list]:
    text = raw.strip()
    candidates = [text] + [
        line.strip() for line in reversed(text.splitlines())
        if line.strip().startswith('[')
    ]
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, list):
            return data
    return None


def normalize_json_lines(
    raw: str,
    test_cases: Sequence[TestCase],
    elapsed_ms: float,
    nonce: Optional[str] = None,
) -> SubmissionResult:
    '''
    Judge the one-record-per-line output of a driver. With ``nonce`` only
    records tagged with it count, anything else on stdout was printed by
    the user code.
    '''
    records = [
        r for r in parse_json_lines(raw)
        if 'index' in r and (nonce is None or r.get('nonce') == nonce)
    ]
    if not records:
        return unparsable_output(raw, test_cases, elapsed_ms)
    return assemble_results(records, test_cases, elapsed_ms)


def _is_submission_wide_error(records: list, case_count: int) -> bool:
    # e.g. a compile error reported as [{"passed": false, "error": ...}]
    if len(records) != 1 or case_count < 2:
        return False
    record = records[0]
    return 'index' not in record and bool(record.get('error'))


def normalize_json_array(
    raw: str,
    test_cases: Sequence[TestCase],
    elapsed_ms: float,
) -> SubmissionResult:
    data = parse_json_array(raw)
    if data is None:
        return unparsable_output(raw, test_cases, elapsed_ms)
    records = [r for r in data if isinstance(r, dict)]
    if not records:
        return unparsable_output(raw, test_cases, elapsed_ms)
    if _is_submission_wide_error(records, len(test_cases)):
        error = str(records[0]['error'])
        signature = classify_failure(error)
        message = describe_failure(signature,
                                   error) if signature else error
        return make_failed_submission(test_cases, message, elapsed_ms)
    return assemble_results(records, test_cases, elapsed_ms)
