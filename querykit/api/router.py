from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException, Request

from querykit.schemas.presets import CountOut, PresetList, PresetOut
from querykit.services.errors import InvalidQueryOptionsError, PresetNotFoundError
from querykit.services.query_facade import QueryFacade

_LOG = logging.getLogger("querykit.http")


def _preset_not_found(exc: PresetNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def _invalid_options(exc: InvalidQueryOptionsError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def _query_options(request: Request) -> Dict[str, Any]:
    return dict(request.query_params)


def build_query_router(facade: QueryFacade, prefix: str = "/documents") -> APIRouter:
    """Expose a facade's query and preset operations as HTTP endpoints.

    The collection is served at ``prefix`` (list), ``prefix/count`` and
    ``prefix/presets/...``. ``prefix`` must be non-empty and start with a
    slash; the router can still be mounted under a further outer prefix.
    """
    path = prefix.rstrip("/")
    if not path.startswith("/"):
        raise ValueError(f"router prefix must start with '/' and name a path, got {prefix!r}")
    router = APIRouter(prefix=path)

    @router.get("")
    async def find_documents(request: Request):
        try:
            result = await facade.find_with_options(_query_options(request))
        except InvalidQueryOptionsError as exc:
            raise _invalid_options(exc)
        return result.model_dump(by_alias=True)

    @router.get("/count", response_model=CountOut)
    async def count_documents(request: Request):
        total = await facade.count_with_options(_query_options(request))
        return {"total": total}

    @router.get("/presets", response_model=PresetList)
    def list_presets():
        return {"presets": facade.list_presets()}

    @router.put("/presets/{name}", response_model=PresetOut)
    def define_preset(name: str, options: Dict[str, Any] = Body(...)):
        facade.define_preset(name, options)
        return {"name": name, "options": facade.get_preset(name) or {}}

    @router.get("/presets/{name}", response_model=PresetOut)
    def get_preset(name: str):
        options = facade.get_preset(name)
        if options is None:
            raise HTTPException(status_code=404, detail=f'Preset "{name}" not found')
        return {"name": name, "options": options}

    @router.delete("/presets/{name}")
    def delete_preset(name: str):
        if not facade.delete_preset(name):
            raise HTTPException(status_code=404, detail=f'Preset "{name}" not found')
        return {"status": "deleted"}

    @router.get("/presets/{name}/results")
    async def find_with_preset(name: str, request: Request):
        try:
            result = await facade.find_with_preset(name, _query_options(request))
        except PresetNotFoundError as exc:
            _LOG.info("preset query rejected name=%s", name)
            raise _preset_not_found(exc)
        except InvalidQueryOptionsError as exc:
            raise _invalid_options(exc)
        return result.model_dump(by_alias=True)

    @router.get("/presets/{name}/count", response_model=CountOut)
    async def count_with_preset(name: str, request: Request):
        try:
            total = await facade.count_with_preset(name, _query_options(request))
        except PresetNotFoundError as exc:
            _LOG.info("preset count rejected name=%s", name)
            raise _preset_not_found(exc)
        return {"total": total}

    return router
