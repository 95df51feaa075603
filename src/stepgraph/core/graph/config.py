"""Graph execution configuration.

Defaults can be overridden through environment variables:

    STEPGRAPH_MAX_STEPS        maximum node invocations per run (uncapped by default)
    STEPGRAPH_FAN_OUT_TIMEOUT  seconds a fan-out node waits for its branches
    STEPGRAPH_MAX_PARALLEL     worker threads used by a fan-out node

Values that cannot be parsed fall back to the built-in default.
"""

import os
from typing import Annotated, Callable, Optional, Type, TypeVar

from pydantic import BaseModel, Field

from stepgraph.core.logging import StepLoggingConfig

ENV_PREFIX = "STEPGRAPH_"

DEFAULT_MAX_STEPS: Optional[int] = None
DEFAULT_FAN_OUT_TIMEOUT = 30.0
DEFAULT_MAX_PARALLEL = 4

N = TypeVar("N", int, float)


def _from_env(name: str, cast: Type[N], default: Optional[N]) -> Callable[[], Optional[N]]:
    def factory() -> Optional[N]:
        raw = os.environ.get(f"{ENV_PREFIX}{name}")
        if raw is None:
            return default
        try:
            value = cast(raw)
        except ValueError:
            return default
        return value if value > 0 else default
    return factory


class GraphConfig(BaseModel):
    """
    Execution settings shared by every run of a compiled graph.

    Attributes:
        max_steps: Node invocations allowed per run (``None`` disables the cap)
        fan_out_timeout: Default seconds a fan-out node waits for its branches
        max_parallel: Default worker count for fan-out nodes
        logging_config: Controls engine logging verbosity
    """
    max_steps: Optional[Annotated[int, Field(gt=0)]] = Field(
        default_factory=_from_env("MAX_STEPS", int, DEFAULT_MAX_STEPS)
    )
    fan_out_timeout: float = Field(
        default_factory=_from_env("FAN_OUT_TIMEOUT", float, DEFAULT_FAN_OUT_TIMEOUT),
        gt=0
    )
    max_parallel: int = Field(
        default_factory=_from_env("MAX_PARALLEL", int, DEFAULT_MAX_PARALLEL),
        gt=0
    )
    logging_config: StepLoggingConfig = Field(default_factory=StepLoggingConfig)

    class Config:
        validate_assignment = True
