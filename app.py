import asyncio
import logging
import os
import secrets
from pathlib import Path
from flask import Flask, request, jsonify
from pydantic import ValidationError
from dispatcher.constant import Language
from dispatcher.dispatcher import Dispatcher
from dispatcher.exception import StagingError, UnsupportedLanguageError
from dispatcher.config import SANDBOX_TOKEN
from dispatcher.utils import debug_enabled

Path("logs").mkdir(exist_ok=True)
logging.basicConfig(
    filename="logs/sandbox.log",
    level=logging.DEBUG,
)
app = Flask(__name__)
if __name__ != "__main__":
    # let flask app use gunicorn's logger
    gunicorn_logger = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_logger.handlers
    app.logger.setLevel(gunicorn_logger.level)
    logging.getLogger().setLevel(gunicorn_logger.level)

    # Allow overriding log level via environment variable
    if debug_enabled():
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)
logger = app.logger

# setup dispatcher
EXECUTOR_CONFIG = os.getenv(
    "EXECUTOR_CONFIG",
    ".config/executor.json",
)
DISPATCHER = Dispatcher(EXECUTOR_CONFIG)


def _token_ok(token: str) -> bool:
    return secrets.compare_digest(token, SANDBOX_TOKEN)


@app.post("/execute")
def execute():
    token = request.headers.get("X-Sandbox-Token") or request.args.get(
        "token", "")
    if not _token_ok(token):
        logger.debug("get invalid token")
        return "invalid token", 403

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return "missing json body", 400
    try:
        execution_request = DISPATCHER.build_request(
            code=payload.get("code", ""),
            test_cases=payload.get("testCases") or [],
            metadata=payload.get("metadata") or {},
            language=payload.get("language", ""),
        )
    except UnsupportedLanguageError as e:
        return str(e), 400
    except ValidationError as e:
        return jsonify({
            "status": "err",
            "msg": "invalid execution request",
            "data": e.errors(include_url=False, include_context=False),
        }), 400

    logger.debug(f"send execution {execution_request.executionId} "
                 "to dispatcher")
    try:
        result = asyncio.run(DISPATCHER.handle(execution_request))
    except StagingError as e:
        logger.error(f"failed to stage execution: {e}")
        return jsonify({
            "status": "err",
            "msg": str(e),
            "data": None,
        }), 500
    return jsonify(result.model_dump())


@app.get("/status")
def status():
    ret = {
        "languages": [language.value for language in Language],
        "nativeCompiled": DISPATCHER.cfg.useNativeCompiled,
    }
    # if token is provided
    if _token_ok(request.args.get("token", "")):
        ret.update({
            "timeoutMs": DISPATCHER.cfg.timeoutMs,
            "memoryLimit": DISPATCHER.cfg.memoryLimit,
            "cpuQuota": DISPATCHER.cfg.cpuQuota,
            "nativeTimeoutMs": DISPATCHER.cfg.nativeTimeoutMs,
            "images": DISPATCHER.cfg.images,
        })
    return jsonify(ret), 200

