import logging
import sys
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(filename)s:%(lineno)d %(funcName)s: %(message)s"


def _level(env_name: str, default: str) -> int:
    return getattr(logging, os.getenv(env_name, default).upper(), getattr(logging, default))


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


LOG_LEVEL_NUM = _level("LOG_LEVEL", "INFO")
logging.basicConfig(level=LOG_LEVEL_NUM, format=LOG_FORMAT)

# Pipeline logger: import progress, batch outcomes, queue activity
backend_logger = logging.getLogger("backend")
backend_logger.setLevel(LOG_LEVEL_NUM)
backend_logger.handlers = [_stdout_handler()]
backend_logger.propagate = False

_uvicorn_handler = _stdout_handler()
for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    server_logger = logging.getLogger(name)
    server_logger.handlers = [_uvicorn_handler]
    server_logger.propagate = False
    server_logger.setLevel(_level("UVICORN_LOG_LEVEL", "INFO"))

# Archive downloads log every request at INFO; SQL echo is off unless asked for
logging.getLogger("httpx").setLevel(_level("HTTPX_LOG_LEVEL", "WARNING"))
logging.getLogger("sqlalchemy.engine").setLevel(_level("SQLALCHEMY_LOG_LEVEL", "WARNING"))
