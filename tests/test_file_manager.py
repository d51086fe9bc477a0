import stat

import pytest

from dispatcher import file_manager
from dispatcher.exception import StagingError


def _mode(path):
    return stat.S_IMODE(path.stat().st_mode)


def test_workspace_files_are_readable(tmp_path):
    workspace = file_manager.create_workspace(tmp_path / 'staging', 'exec-1')
    code = file_manager.write_text(workspace, 'solution.ts', 'let x = 1')
    cases = file_manager.write_json(workspace, 'test-cases.json',
                                    [{'input': ['é']}])

    assert workspace == tmp_path / 'staging' / 'exec-1'
    assert _mode(workspace) == 0o755
    assert _mode(code) == 0o644
    assert 'é' in cases.read_text(encoding='utf-8')


def test_execution_ids_get_separate_workspaces(tmp_path):
    first = file_manager.create_workspace(tmp_path, 'a')
    second = file_manager.create_workspace(tmp_path, 'b')
    assert first != second


def test_reused_execution_id_is_a_staging_error(tmp_path):
    file_manager.create_workspace(tmp_path, 'same')
    with pytest.raises(StagingError):
        file_manager.create_workspace(tmp_path, 'same')


def test_clean_data(tmp_path):
    workspace = file_manager.create_workspace(tmp_path, 'exec-1')
    file_manager.write_text(workspace, 'main.go', 'package main')

    file_manager.clean_data(workspace)
    assert not workspace.exists()
    # cleaning twice is fine
    file_manager.clean_data(workspace)
