from __future__ import annotations

from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel

from ..scanner.errors import ToolNotFoundError
from ..scanner.orchestrator import Instrumentor


class ScanResponse(BaseModel):
    registered: int
    total: int


class ToolCallResponse(BaseModel):
    name: str
    result: dict[str, Any]


def create_app(instrumentor: Instrumentor) -> FastAPI:
    """
    Serve the tools of an instrumented document over HTTP.

    The manifest is published at the well-known location so callers can
    discover tools without loading the page themselves.
    """

    app = FastAPI(title="webmcp-auto")

    @app.get("/.well-known/webmcp.json")
    async def manifest():
        return instrumentor.get_tool_manifest()

    @app.get("/tools")
    async def list_tools():
        return instrumentor.get_tools()

    @app.post("/tools/{name}/call", response_model=ToolCallResponse)
    async def call_tool(name: str, arguments: Optional[dict[str, Any]] = Body(default=None)):
        try:
            result = await instrumentor.registry.invoke(name, arguments)
        except ToolNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return ToolCallResponse(name=name, result=result)

    @app.post("/scan", response_model=ScanResponse)
    async def rescan():
        registered = instrumentor.scan()
        return ScanResponse(registered=registered, total=len(instrumentor.registry))

    return app
