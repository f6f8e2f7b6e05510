"""FastAPI dependencies.

Usage in routers::

    from flarescope.api.deps import Context

    @router.get("/things")
    def list_things(ctx: Context):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from flarescope.api.context import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.context


Context = Annotated[AppContext, Depends(get_context)]
