from enum import Enum


class Language(str, Enum):
    SCRIPT = 'script'
    COMPILED = 'compiled'
    SERVER_SIDE = 'server-side'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return _ALIASES.get(value.strip().lower())
        return None

    @classmethod
    def parse(cls, value) -> 'Language':
        # local import, exception module depends on this one
        from .exception import UnsupportedLanguageError
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedLanguageError(
                f'unsupported language: {value!r}') from None


_ALIASES = {
    'script': Language.SCRIPT,
    'typescript': Language.SCRIPT,
    'javascript': Language.SCRIPT,
    'ts': Language.SCRIPT,
    'js': Language.SCRIPT,
    'compiled': Language.COMPILED,
    'go': Language.COMPILED,
    'golang': Language.COMPILED,
    'server-side': Language.SERVER_SIDE,
    'server_side': Language.SERVER_SIDE,
    'php': Language.SERVER_SIDE,
}


class Backend(str, Enum):
    NATIVE = 'native'
    CONTAINER = 'container'


class FailureKind(str, Enum):
    TOOLCHAIN_UNAVAILABLE = 'toolchain-unavailable'
    MODULE_INIT = 'module-init'
    COMPILE = 'compile'
    TIMEOUT = 'timeout'
    OUTPUT_PARSE = 'output-parse'
    LIFECYCLE = 'lifecycle'
    GENERIC = 'generic'
