from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class SchedulerActionResponse(BaseModel):
    message: str
    status: Literal["running", "stopped"]


class SchedulerStatusResponse(BaseModel):
    running: bool
