import os
import sys
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from .budget import DEFAULT_STEP_LIMIT


class RuntimeConfig(BaseModel):
    """Knobs of the scheduler and the evaluator. Defaults match the board host."""
    tick_rate: float = Field(default=60.0, gt=0, description="Loop ticks per second")
    step_limit: int = Field(default=DEFAULT_STEP_LIMIT, ge=1, description="Steps allowed per compile, setup or tick")
    yield_seconds: float = Field(default=0.001, ge=0, description="Sleep taken by the 'yield' builtin")
    text_font_size: float = Field(default=20.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def coerce_log_level(cls, v):
        return str(v).strip().upper() or "INFO"

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate

    @classmethod
    def from_env(cls, **overrides) -> "RuntimeConfig":
        """Read BOARDFLOW_* environment variables; explicit overrides win."""
        values = {
            "tick_rate": os.getenv("BOARDFLOW_TICK_RATE"),
            "step_limit": os.getenv("BOARDFLOW_STEP_LIMIT"),
            "yield_seconds": os.getenv("BOARDFLOW_YIELD_SECONDS"),
            "log_level": os.getenv("BOARDFLOW_LOG_LEVEL"),
        }
        values = {k: v for k, v in values.items() if v is not None}
        values.update(overrides)
        return cls.model_validate(values)


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stderr sink at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or "INFO").upper(),
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {name}:{function} - {message}",
    )
