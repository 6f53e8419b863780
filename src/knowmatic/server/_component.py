# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Component ABC for composable server pieces."""

import abc

from fastapi import APIRouter


class Component(abc.ABC):
    """A set of routes plus the models they need, started with the app."""

    @abc.abstractmethod
    def router(self) -> APIRouter: ...

    @abc.abstractmethod
    async def start(self) -> None:
        """Load models; called once from the application lifespan."""

    @abc.abstractmethod
    async def stop(self) -> None: ...
