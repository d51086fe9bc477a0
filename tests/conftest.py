import pytest
from dispatcher.config import ExecutorConfig
from runner.base import BaseRunner
from tests.dummies import DockerBehavior, make_dummy_client


@pytest.fixture
def executor_cfg(tmp_path):
    return ExecutorConfig(
        stagingDir=tmp_path / "staging",
        timeoutMs=2000,
        nativeTimeoutMs=2000,
    )


@pytest.fixture
def docker_behavior(monkeypatch):
    # every docker.APIClient created by the engine is a dummy bound to this
    behavior = DockerBehavior()
    monkeypatch.setattr("runner.container.docker.APIClient",
                        make_dummy_client(behavior))
    return behavior


@pytest.fixture
def record_nonce(monkeypatch):
    nonce = "f00dfeed"
    monkeypatch.setattr(BaseRunner, "record_nonce", lambda self: nonce)
    return nonce


@pytest.fixture
def staging_entries(executor_cfg):

    def entries():
        root = executor_cfg.stagingDir
        if not root.exists():
            return []
        return sorted(p.name for p in root.iterdir())

    return entries
