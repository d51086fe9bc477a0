'''
Turn a bare Go function into a self-checking program.

The generated program prints a json array with one
``{index, passed, expected, actual, error}`` record per test case.
'''
import json
import re
from pathlib import Path
from string import Template
from typing import Any, Optional, Sequence

from dispatcher.meta import FunctionMetadata, TestCase

TEMPLATE_PATH = Path(__file__).with_name('templates') / 'go_harness.go'
HARNESS_IMPORTS = ('"encoding/json"', '"fmt"', '"reflect"')

_INT_TAGS = {
    'int', 'int8', 'int16', 'int32', 'int64', 'uint', 'uint8', 'uint16',
    'uint32', 'uint64', 'byte', 'rune'
}
_FLOAT_TAGS = {'float32', 'float64'}
_MAP_PREFIX = 'map[string]'
_BUILTIN_TAGS = _INT_TAGS | _FLOAT_TAGS | {
    'string', 'bool', 'interface{}', 'any'
}
_MAIN_FUNC = re.compile(r'^func\s+main\s*\(')
_IMPORT_BLOCK = re.compile(r'^import\s*\((.*)$')
_IMPORT_LINE = re.compile(r'^import\s+(.+)$')


def _strip_comment(spec: str) -> str:
    return spec.split('//')[0].strip()


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def clean_user_code(code: str) -> str:
    '''
    Drop the package clause, imports and any ``func main`` so the code can
    be embedded in the harness. Everything else is kept verbatim.
    '''
    kept = []
    in_imports = False
    in_main = False
    main_opened = False
    depth = 0
    for line in code.splitlines():
        stripped = line.strip()
        if in_imports:
            if stripped.startswith(')'):
                in_imports = False
            continue
        if in_main:
            depth += line.count('{') - line.count('}')
            main_opened = main_opened or '{' in line
            if main_opened and depth <= 0:
                in_main = False
            continue
        if stripped.startswith('package '):
            continue
        block = _IMPORT_BLOCK.match(stripped)
        if block:
            in_imports = ')' not in block.group(1)
            continue
        if _IMPORT_LINE.match(stripped):
            continue
        if _MAIN_FUNC.match(stripped):
            depth = line.count('{') - line.count('}')
            main_opened = '{' in line
            in_main = not (main_opened and depth <= 0)
            continue
        kept.append(line)
    return '\n'.join(_trim_blank_edges(kept))


def extract_imports(code: str) -> list[str]:
    '''
    Collect import specs (``"strings"``, ``str "strings"``) of the user code.
    '''
    specs = []
    in_block = False
    for line in code.splitlines():
        stripped = line.strip()
        if in_block:
            if stripped.startswith(')'):
                in_block = False
                continue
            spec = _strip_comment(stripped)
            if spec:
                specs.append(spec)
            continue
        block = _IMPORT_BLOCK.match(stripped)
        if block:
            rest = block.group(1)
            if ')' in rest:
                specs.extend(
                    _strip_comment(s) for s in rest.split(')')[0].split(';')
                    if _strip_comment(s))
            else:
                in_block = True
            continue
        single = _IMPORT_LINE.match(stripped)
        if single:
            specs.append(_strip_comment(single.group(1)))
    return specs


def _package_name(spec: str) -> str:
    parts = spec.split()
    if len(parts) > 1:
        return parts[0]
    return parts[0].strip('"').rsplit('/', 1)[-1]


def is_import_used(spec: str, code: str) -> bool:
    '''
    Whether ``code`` still refers to the package of ``spec``. Imports only
    used by a dropped ``func main`` would not compile.
    '''
    name = _package_name(spec)
    if name in ('_', '.'):
        return True
    return re.search(rf'\b{re.escape(name)}\.', code) is not None


def merge_imports(user_specs: Sequence[str],
                  code: Optional[str] = None) -> list[str]:
    merged = list(HARNESS_IMPORTS)
    for spec in user_specs:
        if spec in merged:
            continue
        if code is not None and not is_import_used(spec, code):
            continue
        merged.append(spec)
    return merged


def go_string(text: str) -> str:
    # a json string literal is a valid interpreted go string literal
    return json.dumps(text, ensure_ascii=False)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_int(value) or isinstance(value, float)


def untyped_literal(value: Any) -> str:
    if value is None:
        return 'nil'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if _is_number(value):
        return json.dumps(value)
    if isinstance(value, str):
        return go_string(value)
    if isinstance(value, list):
        items = ', '.join(untyped_literal(v) for v in value)
        return f'[]interface{{}}{{{items}}}'
    if isinstance(value, dict):
        items = ', '.join(f'{go_string(str(k))}: {untyped_literal(v)}'
                          for k, v in value.items())
        return f'map[string]interface{{}}{{{items}}}'
    return go_string(str(value))


def normalize_type_tag(type_tag: Optional[str]) -> str:
    '''
    Canonical spelling of a parameter type tag: no spaces, builtin type
    names lower case (``Int`` -> ``int``, ``[]Float64`` -> ``[]float64``).
    Other names keep their case, go types are case sensitive.
    '''
    tag = (type_tag or '').replace(' ', '')
    if tag.startswith('[]'):
        return '[]' + normalize_type_tag(tag[2:])
    if tag.lower().startswith(_MAP_PREFIX):
        return _MAP_PREFIX + normalize_type_tag(tag[len(_MAP_PREFIX):])
    if tag.lower() in _BUILTIN_TAGS:
        return tag.lower()
    return tag


def go_literal(value: Any, type_tag: Optional[str] = None) -> str:
    '''
    Render ``value`` as a Go expression of the parameter type ``type_tag``.
    Unknown tags fall back to an untyped literal.
    '''
    tag = normalize_type_tag(type_tag)
    if tag in _INT_TAGS:
        if _is_int(value):
            return str(value)
        if isinstance(value, float):
            return str(int(value))
        return f'{tag}({untyped_literal(value)})'
    if tag in _FLOAT_TAGS:
        if _is_number(value):
            return json.dumps(value)
        return f'{tag}({untyped_literal(value)})'
    if tag == 'string':
        if isinstance(value, str):
            return go_string(value)
        return go_string(json.dumps(value, ensure_ascii=False))
    if tag == 'bool':
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return f'bool({untyped_literal(value)})'
    if tag.startswith('[]'):
        if value is None:
            return 'nil'
        if isinstance(value, list):
            elem = tag[2:]
            items = ', '.join(go_literal(v, elem) for v in value)
            return f'{tag}{{{items}}}'
    if tag.startswith(_MAP_PREFIX):
        if value is None:
            return 'nil'
        if isinstance(value, dict):
            elem = tag[len(_MAP_PREFIX):]
            items = ', '.join(f'{go_string(str(k))}: {go_literal(v, elem)}'
                              for k, v in value.items())
            return f'{tag}{{{items}}}'
    return untyped_literal(value)


def render_call(metadata: FunctionMetadata, case: TestCase) -> str:
    args = ', '.join(
        go_literal(value, metadata.parameter_type(i))
        for i, value in enumerate(case.input))
    return f'{metadata.functionName}({args})'


def render_test_call(index: int, metadata: FunctionMetadata,
                     case: TestCase) -> str:
    expected = go_string(json.dumps(case.expected, ensure_ascii=False))
    call = render_call(metadata, case)
    return (f'\tresults = append(results, runCase({index}, {expected}, '
            f'func() interface{{}} {{ return {call} }}))')


def generate_harness(
    code: str,
    test_cases: Sequence[TestCase],
    metadata: FunctionMetadata,
) -> str:
    template = Template(TEMPLATE_PATH.read_text())
    user_code = clean_user_code(code)
    imports = '\n'.join(
        f'\t{spec}'
        for spec in merge_imports(extract_imports(code), user_code))
    test_calls = '\n'.join(
        render_test_call(i, metadata, case)
        for i, case in enumerate(test_cases))
    return template.substitute(
        imports=imports,
        user_code=user_code,
        test_calls=test_calls,
    )
