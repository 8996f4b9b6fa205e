"""FastAPI dependency injection helpers.

Long-lived collaborators are created in the app lifespan and stored on
``app.state``; tests swap them out through ``app.dependency_overrides``.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from dispatch_service.application.ports.cache import Cache
from dispatch_service.application.repositories.message import MessageStore
from dispatch_service.services.message_sender import MessageSender
from dispatch_service.services.scheduler import Scheduler


def get_store(request: Request) -> MessageStore:
    return request.app.state.store


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_sender(request: Request) -> MessageSender:
    return request.app.state.sender


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


StoreDep = Annotated[MessageStore, Depends(get_store)]
CacheDep = Annotated[Cache, Depends(get_cache)]
SenderDep = Annotated[MessageSender, Depends(get_sender)]
SchedulerDep = Annotated[Scheduler, Depends(get_scheduler)]
