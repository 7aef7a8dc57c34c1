from __future__ import annotations

import time

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict


class AppBaseModel(PydanticBaseModel):
    """Base model for all domain models."""

    model_config = ConfigDict(
        from_attributes=True,
        extra="forbid",
        populate_by_name=True,
    )


def epoch_millis() -> int:
    """Local wall clock in milliseconds, the unit notes use for ``timestamp``."""
    return int(time.time() * 1000)
