import os

from pydantic import BaseModel


class Settings(BaseModel):
    DATA_DIR: str = os.getenv("DATA_DIR", "data")
    RESULTS_DIR: str = os.getenv("RESULTS_DIR", os.path.join(os.getenv("DATA_DIR", "data"), "results"))

    # Executable overrides (empty: look up on PATH)
    RUFF_BIN: str = os.getenv("RUFF_BIN", "")
    BANDIT_BIN: str = os.getenv("BANDIT_BIN", "")

    # Execution
    DEFAULT_TOOL_TIMEOUT_SEC: int = int(os.getenv("DEFAULT_TOOL_TIMEOUT_SEC", "180"))
    ASYNC_WORKERS: int = int(os.getenv("ASYNC_WORKERS", "2"))

    # Reporting
    TOP_FILES_LIMIT: int = int(os.getenv("TOP_FILES_LIMIT", "10"))


settings = Settings()
