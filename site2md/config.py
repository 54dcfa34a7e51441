import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "site2md"
    APP_VERSION: str = "0.1.0"
    USER_AGENT: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36 site2md/0.1"
    )

    # Crawling
    CRAWL_MAX_DEPTH: int = 2
    CRAWL_MAX_URLS: int = 100
    CRAWL_DELAY_MS: int = 500  # politeness delay between page fetches
    FETCH_TIMEOUT_MS: int = 15000

    # Batch conversion
    BATCH_MAX_RETRIES: int = 3
    BATCH_DELAY_MS: int = 500  # pause between URLs
    CONCURRENCY: int = 1  # reserved; batches always run sequentially

    # Conversion
    CONVERT_TITLE: bool = True
    CONVERT_LINKS: bool = True
    CONVERT_CLEAN: bool = True

    # Output
    OUTPUT_MODE: str = "merged"  # "merged" or "separate"
    SPLIT_SIZE: int = 0  # 0 = single merged file

    # Logging
    LOG_FORMAT: str = "text"  # "json" for machine-readable logs
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("BATCH_MAX_RETRIES")
    @classmethod
    def _check_retries(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("BATCH_MAX_RETRIES must be between 1 and 10")
        return v

    @field_validator("SPLIT_SIZE")
    @classmethod
    def _check_split(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("SPLIT_SIZE must be between 0 and 100")
        return v

    @field_validator("OUTPUT_MODE")
    @classmethod
    def _check_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in ("merged", "separate"):
            raise ValueError("OUTPUT_MODE must be 'merged' or 'separate'")
        return v

    def model_post_init(self, __context) -> None:
        if self.CONCURRENCY != 1:
            _logger.warning(
                "CONCURRENCY=%s is reserved and has no effect; URLs are processed one at a time.",
                self.CONCURRENCY,
            )


settings = Settings()
