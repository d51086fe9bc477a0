import importlib

import pytest

from dispatcher.result_factory import make_case_result, make_submission_result


@pytest.fixture
def sandbox_app(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("EXECUTOR_CONFIG", str(tmp_path / "executor.json"))
    import app as sandbox_app
    return importlib.reload(sandbox_app)


def _body(**kwargs):
    body = {
        "code": "function add(a, b) { return a + b; }",
        "language": "typescript",
        "testCases": [{
            "input": [1, 2],
            "expected": 3
        }],
        "metadata": {
            "functionName": "add",
        },
    }
    body.update(kwargs)
    return body


def _post(sandbox_app, body, token=None):
    client = sandbox_app.app.test_client()
    token = sandbox_app.SANDBOX_TOKEN if token is None else token
    return client.post("/execute",
                       json=body,
                       headers={"X-Sandbox-Token": token})


def test_execute_rejects_invalid_token(sandbox_app):
    rv = _post(sandbox_app, _body(), token="not-the-token")
    assert rv.status_code == 403


def test_execute_rejects_unsupported_language(sandbox_app, monkeypatch):

    async def never_called(request):
        raise AssertionError("runner must not be reached")

    monkeypatch.setattr(sandbox_app.DISPATCHER, "handle", never_called)
    rv = _post(sandbox_app, _body(language="cobol"))

    assert rv.status_code == 400
    assert "cobol" in rv.get_data(as_text=True)


@pytest.mark.parametrize(
    "body",
    [
        _body(testCases=[]),
        _body(metadata={"functionName": "not a name"}),
    ],
)
def test_execute_rejects_invalid_request(sandbox_app, body):
    rv = _post(sandbox_app, body)

    assert rv.status_code == 400
    payload = rv.get_json()
    assert payload["status"] == "err"
    assert payload["data"]


def test_execute_returns_submission_result(sandbox_app, monkeypatch):
    seen = []

    async def fake_handle(request):
        seen.append(request)
        return make_submission_result(
            [make_case_result(True, actual=3, expected=3, exec_time=5)], 5)

    monkeypatch.setattr(sandbox_app.DISPATCHER, "handle", fake_handle)
    rv = _post(sandbox_app, _body())

    assert rv.status_code == 200
    payload = rv.get_json()
    assert payload["success"] is True
    assert payload["results"][0]["actual"] == 3
    assert payload["metrics"]["passedTests"] == 1
    assert seen[0].language.value == "script"


def test_status(sandbox_app):
    client = sandbox_app.app.test_client()

    rv = client.get("/status")
    assert rv.status_code == 200
    assert set(rv.get_json()["languages"]) == {
        "script", "compiled", "server-side"
    }
    assert "timeoutMs" not in rv.get_json()

    rv = client.get(f"/status?token={sandbox_app.SANDBOX_TOKEN}")
    assert rv.get_json()["timeoutMs"] == 10000
