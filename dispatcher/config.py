import json
import os
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator

# sandbox token
SANDBOX_TOKEN = os.getenv(
    'SANDBOX_TOKEN',
    'KoNoSandboxDa',
)

_DEFAULT_EXECUTOR_CONFIG_PATH = Path(
    os.getenv('EXECUTOR_CONFIG', '.config/executor.json'))

DEFAULT_IMAGES = {
    'script': 'code-runner',
    'server-side': 'php-runner',
    'compiled': 'go-runner',
}

# env name -> config key
_ENV_OVERRIDES = {
    'DOCKER_TIMEOUT': 'timeoutMs',
    'DOCKER_MEMORY_LIMIT': 'memoryLimit',
    'DOCKER_CPU_QUOTA': 'cpuQuota',
    'DOCKER_PIDS_LIMIT': 'pidsLimit',
    'RUNNER_TEMP_DIR': 'stagingDir',
    'NATIVE_GO_TIMEOUT': 'nativeTimeoutMs',
    'DOCKER_URL': 'dockerUrl',
    'SANDBOX_ROOT': 'sandboxRoot',
    'HOST_ROOT': 'hostRoot',
}
_IMAGE_ENV_OVERRIDES = {
    'SCRIPT_IMAGE': 'script',
    'SERVER_SIDE_IMAGE': 'server-side',
    'COMPILED_IMAGE': 'compiled',
}


class ExecutorConfig(BaseModel, frozen=True):
    timeoutMs: int = Field(10000, gt=0)
    memoryLimit: str = '128m'
    cpuQuota: int = Field(100000, gt=0)
    pidsLimit: int = Field(64, gt=0)
    stagingDir: Path = Path('temp')
    useNativeCompiled: bool = False
    nativeTimeoutMs: int = Field(45000, gt=0)
    dockerUrl: str = 'unix://var/run/docker.sock'
    images: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_IMAGES))
    sandboxRoot: Optional[Path] = None
    hostRoot: Optional[Path] = None

    @field_validator('memoryLimit')
    @classmethod
    def _validate_memory_limit(cls, v: str):
        v = v.strip().lower()
        if not v[:-1].isdigit() or v[-1] not in 'bkmg':
            raise ValueError(f'invalid memory limit: {v!r}')
        return v

    @field_validator('images')
    @classmethod
    def _fill_images(cls, v: Dict[str, str]):
        return {**DEFAULT_IMAGES, **v}

    def image_for(self, language) -> str:
        return self.images[getattr(language, 'value', language)]


def _load_executor_config(path: Path) -> dict:
    try:
        with path.open() as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError:
        return {}


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() == 'true'


def get_executor_config(
        config_path: str | Path | None = None) -> ExecutorConfig:
    '''
    Load executor settings from the json config file, then let environment
    variables override single keys.
    '''
    path = Path(
        config_path) if config_path else _DEFAULT_EXECUTOR_CONFIG_PATH
    cfg = _load_executor_config(path)
    for env_name, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            cfg[key] = value
    images = dict(cfg.get('images', {}))
    for env_name, key in _IMAGE_ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            images[key] = value
    cfg['images'] = images
    prefer_native = _env_flag('USE_NATIVE_GO_EXECUTOR')
    if prefer_native is not None:
        cfg['useNativeCompiled'] = prefer_native
    return ExecutorConfig.model_validate(cfg)
