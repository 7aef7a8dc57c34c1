from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

URL_PATTERN = re.compile(r"(https?://\S+)")


class Segment(BaseModel):
    """A run of note text, either plain text or a link."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text", "link"]
    value: str


def tokenize(text: str) -> list[Segment]:
    """Split text into plain-text and link segments.

    Joining the segment values gives back the input exactly. Empty runs
    (text before a leading link, between adjacent matches) are left out.
    """
    if not text:
        return []
    segments: list[Segment] = []
    # re.split keeps the captured links at odd indexes
    for index, part in enumerate(URL_PATTERN.split(text)):
        if not part:
            continue
        segments.append(Segment(kind="link" if index % 2 else "text", value=part))
    return segments
