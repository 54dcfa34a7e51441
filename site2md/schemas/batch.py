from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from site2md.config import settings
from site2md.services.content import ConvertOptions


class ConversionResult(BaseModel):
    model_config = {"frozen": True}

    url: str
    markdown: str
    html: str | None = None
    error: str | None = None
    pdf_path: str | None = None  # set when a PDF was downloaded instead of converted

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchOptions(BaseModel):
    max_retries: int = settings.BATCH_MAX_RETRIES
    delay_ms: int = settings.BATCH_DELAY_MS
    timeout_ms: int = settings.FETCH_TIMEOUT_MS
    keep_html: bool = False
    pdf_dir: Path | None = None
    title: bool = settings.CONVERT_TITLE
    links: bool = settings.CONVERT_LINKS
    clean: bool = settings.CONVERT_CLEAN

    @field_validator("max_retries")
    @classmethod
    def _check_retries(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("max_retries must be between 1 and 10")
        return v

    @field_validator("delay_ms", "timeout_ms")
    @classmethod
    def _check_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("delay_ms and timeout_ms must be >= 0")
        return v

    @property
    def convert_options(self) -> ConvertOptions:
        return ConvertOptions(title=self.title, links=self.links, clean=self.clean)


class BatchState(BaseModel):
    """Progress of one batch run.

    ``current_index`` is the next item to process and never exceeds
    ``len(items)``. ``results`` holds one entry per processed item.
    """

    items: list[str]
    current_index: int = 0
    paused: bool = False
    results: list[ConversionResult] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.current_index >= len(self.items)

    @property
    def remaining(self) -> int:
        return len(self.items) - self.current_index

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict) -> "BatchState":
        state = cls.model_validate(data)
        state.current_index = max(0, min(state.current_index, len(state.items)))
        return state


class BatchStatus(BaseModel):
    """Status line after each processed URL (1-based ``index``)."""

    index: int
    total: int
    url: str
    ok: bool
    message: str


class BatchSummary(BaseModel):
    total: int
    succeeded: int
    failed: int
    paused: bool = False
    complete: bool = False
