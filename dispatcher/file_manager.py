import json
import os
import shutil
from pathlib import Path
from typing import Any
from .exception import StagingError
from .utils import logger

# containers run as an unprivileged user, staged files must stay readable
_DIR_MODE = 0o755
_FILE_MODE = 0o644


def create_workspace(staging_root: Path, execution_id: str) -> Path:
    '''
    Create the private working directory of one execution.
    '''
    workspace = Path(staging_root) / execution_id
    try:
        Path(staging_root).mkdir(parents=True, exist_ok=True)
        workspace.mkdir()
        os.chmod(workspace, _DIR_MODE)
    except OSError as e:
        raise StagingError(
            f'can not prepare workspace {workspace}: {e}') from e
    logger().debug(f'workspace created. [id={execution_id}]')
    return workspace


def write_text(workspace: Path, name: str, content: str) -> Path:
    path = workspace / name
    path.write_text(content, encoding='utf-8')
    os.chmod(path, _FILE_MODE)
    return path


def write_json(workspace: Path, name: str, payload: Any) -> Path:
    return write_text(workspace, name,
                      json.dumps(payload, ensure_ascii=False, indent=2))


def copy_file(workspace: Path, source: Path, name: str) -> Path:
    path = workspace / name
    shutil.copyfile(source, path)
    os.chmod(path, _FILE_MODE)
    return path


def clean_data(workspace: Path):
    if not workspace.exists():
        return
    try:
        shutil.rmtree(workspace)
    except OSError as e:
        logger().warning(f'failed to remove workspace {workspace}: {e}')
        return
    logger().debug(f'workspace removed. [path={workspace}]')
