# selenium_module/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class SeleniumWebDriver(str, Enum):
    chrome = "chrome"
    firefox = "firefox"
    edge = "edge"
    safari = "safari"
    internet_explorer = "internet_explorer"
    remote = "remote"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for the Selenium module.

    Values load in this order of precedence:
      1) Environment variables (prefixed with SELENIUM_)
      2) .env file in project root
      3) Defaults below
    """

    # ---- Driver configuration ----
    DRIVER: str = Field(default=SeleniumWebDriver.chrome.value, description="Registered web driver name")
    HEADLESS: bool = Field(default=True, description="Run the browser headless where supported")
    WINDOW_WIDTH: int = Field(default=1366, ge=320, le=7680)
    WINDOW_HEIGHT: int = Field(default=768, ge=320, le=4320)
    REMOTE_URL: Optional[str] = Field(default=None, description="Selenium Grid / remote endpoint for the remote driver")
    DRIVER_EXECUTABLE: Optional[Path] = Field(default=None, description="Explicit path to the driver binary")
    PROXY_SERVER: Optional[str] = None

    # ---- Timeouts ----
    PAGE_LOAD_TIMEOUT_MS: int = Field(default=60000, ge=1000)
    IMPLICIT_WAIT_MS: int = Field(default=0, ge=0)
    UNTIL_TIMEOUT_MS: int = Field(default=10000, ge=0, description="Default timeout for `until`")
    POLL_INTERVAL_MS: int = Field(default=500, ge=1)
    PROPAGATE_CONDITION_ERRORS: bool = Field(
        default=False,
        description="Stop waiting on the first condition error instead of logging it and polling again",
    )

    # ---- Flows ----
    FLOWS_DIR: Path = Field(default=Path("./flows"))
    OUTPUT_DIR: Path = Field(default=Path("./runs"))

    # ---- Retry & error handling ----
    MAX_RETRIES: int = Field(default=1, ge=0)
    RETRY_DELAY: int = Field(default=500, ge=0)
    CONTINUE_ON_ERROR: bool = Field(default=False)

    # ---- Execution ----
    PARALLEL_EXECUTION: bool = Field(default=False)
    MAX_WORKERS: int = Field(default=3, ge=1)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./selenium-module.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="SELENIUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("DRIVER", mode="before")
    @classmethod
    def _lower_driver(cls, v):
        if isinstance(v, SeleniumWebDriver):
            return v.value
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("FLOWS_DIR", "OUTPUT_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path):
        return v if v.is_absolute() else Path.cwd() / v

    def window_size_arg(self) -> str:
        return f"--window-size={self.WINDOW_WIDTH},{self.WINDOW_HEIGHT}"


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    return Settings()
