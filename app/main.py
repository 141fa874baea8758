"""Entry point for the FastAPI-powered comparison service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Literal

import httpx
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from .config import settings
from .database import Database
from .models import MediaKind, SelectionKind
from .services.saved_searches import SearchType
from .services.storage import SqlKeyValueStore
from .services.tmdb import TMDBClient
from .session import ComparisonSession

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app: FastAPI


class ReorderRequest(BaseModel):
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


class SaveSearchRequest(BaseModel):
    type: SearchType
    name: str = Field(default="", max_length=120)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    provider = TMDBClient(settings, tmdb_http_client)
    session = ComparisonSession(
        settings, SqlKeyValueStore(database.session_factory), provider
    )
    fastapi_app.state.session = session
    fastapi_app.state.database = database
    await session.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await session.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Find the cast, crew and filmography shared by several titles or people",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_session(app: FastAPI) -> ComparisonSession:
    session = getattr(app.state, "session", None)
    if not isinstance(session, ComparisonSession):
        raise RuntimeError("Comparison session not initialised")
    return session


def _selection_payload(session: ComparisonSession, kind: SelectionKind) -> dict[str, Any]:
    store = session.selection(kind)
    return {
        "kind": kind,
        "entries": [entry.model_dump(mode="json") for entry in store.entries],
    }


def register_routes(fastapi_app: FastAPI) -> None:
    def _validate_entry(session: ComparisonSession, kind: SelectionKind, payload: dict[str, Any]):
        try:
            return session.selection(kind).model.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/selections/{kind}")
    async def list_selection(kind: SelectionKind) -> dict[str, Any]:
        return _selection_payload(get_session(fastapi_app), kind)

    @fastapi_app.post("/selections/{kind}")
    async def add_to_selection(
        kind: SelectionKind, payload: dict[str, Any] = Body(...)
    ) -> dict[str, Any]:
        session = get_session(fastapi_app)
        entry = _validate_entry(session, kind, payload)
        await session.selection(kind).add(entry)
        return _selection_payload(session, kind)

    @fastapi_app.put("/selections/{kind}/{index}")
    async def update_selection(
        kind: SelectionKind, index: int, payload: dict[str, Any] = Body(...)
    ) -> dict[str, Any]:
        session = get_session(fastapi_app)
        entry = _validate_entry(session, kind, payload)
        if not await session.selection(kind).update(index, entry):
            raise HTTPException(status_code=400, detail="Selection entry could not be updated")
        return _selection_payload(session, kind)

    @fastapi_app.post("/selections/{kind}/reorder")
    async def reorder_selection(kind: SelectionKind, request: ReorderRequest) -> dict[str, Any]:
        session = get_session(fastapi_app)
        if not await session.selection(kind).reorder(request.from_index, request.to_index):
            raise HTTPException(status_code=400, detail="Selection index out of range")
        return _selection_payload(session, kind)

    @fastapi_app.delete("/selections/{kind}")
    async def clear_selection(kind: SelectionKind) -> dict[str, Any]:
        session = get_session(fastapi_app)
        await session.selection(kind).clear()
        return _selection_payload(session, kind)

    @fastapi_app.delete("/selections/titles/{media_kind}/{title_id}")
    async def remove_title(media_kind: MediaKind, title_id: int) -> dict[str, Any]:
        session = get_session(fastapi_app)
        if not await session.titles.remove((media_kind, title_id)):
            raise HTTPException(status_code=404, detail="Title is not selected")
        return _selection_payload(session, "titles")

    @fastapi_app.delete("/selections/people/{person_id}")
    async def remove_person(person_id: int) -> dict[str, Any]:
        session = get_session(fastapi_app)
        if not await session.people.remove(person_id):
            raise HTTPException(status_code=404, detail="Person is not selected")
        return _selection_payload(session, "people")

    @fastapi_app.get("/comparisons/{kind}")
    async def get_comparison(kind: SelectionKind, wait: bool = False) -> dict[str, Any]:
        comparison = get_session(fastapi_app).comparison(kind)
        if wait:
            await comparison.wait_idle()
        return comparison.snapshot.to_payload()

    @fastapi_app.post("/comparisons/{kind}/refresh")
    async def refresh_comparison(kind: SelectionKind) -> dict[str, Any]:
        comparison = get_session(fastapi_app).comparison(kind)
        snapshot = await comparison.refresh()
        return snapshot.to_payload()

    @fastapi_app.get("/search/{kind}")
    async def search(
        kind: Literal["movie", "series", "people"], query: str = ""
    ) -> dict[str, Any]:
        provider = get_session(fastapi_app).provider
        if not isinstance(provider, TMDBClient):
            raise HTTPException(status_code=501, detail="Search is not available")
        if not query.strip():
            raise HTTPException(status_code=400, detail="Please enter a search term")
        if kind == "people":
            results = await provider.search_people(query)
        else:
            results = await provider.search_titles(query, kind)
        return {"results": [result.model_dump(mode="json") for result in results]}

    @fastapi_app.get("/saved-searches")
    async def list_saved_searches(
        query: str = "", type: SearchType | None = None
    ) -> dict[str, Any]:
        store = get_session(fastapi_app).saved_searches
        searches = store.search(query)
        if type is not None:
            searches = [search for search in searches if search.type == type]
        return {
            "searches": [search.model_dump(mode="json", by_alias=True) for search in searches]
        }

    @fastapi_app.post("/saved-searches")
    async def save_current_search(request: SaveSearchRequest) -> dict[str, Any]:
        session = get_session(fastapi_app)
        if request.type == "media":
            entries = session.titles.entries
            if not entries:
                raise HTTPException(status_code=400, detail="Please select at least one title")
            saved = await session.saved_searches.save(
                name=request.name,
                search_type="media",
                media_items=entries,
                description=request.description,
                tags=request.tags,
            )
        else:
            entries = session.people.entries
            if not entries:
                raise HTTPException(status_code=400, detail="Please select at least one person")
            saved = await session.saved_searches.save(
                name=request.name,
                search_type="person",
                people=entries,
                description=request.description,
                tags=request.tags,
            )
        return saved.model_dump(mode="json", by_alias=True)

    @fastapi_app.delete("/saved-searches/{search_id}")
    async def delete_saved_search(search_id: str) -> dict[str, str]:
        if not await get_session(fastapi_app).saved_searches.delete(search_id):
            raise HTTPException(status_code=404, detail="Saved search not found")
        return {"status": "deleted"}

    @fastapi_app.post("/saved-searches/{search_id}/restore")
    async def restore_saved_search(search_id: str) -> dict[str, Any]:
        session = get_session(fastapi_app)
        search = session.saved_searches.get(search_id)
        if search is None:
            raise HTTPException(status_code=404, detail="Saved search not found")
        await session.restore(search)
        kind: SelectionKind = "titles" if search.type == "media" else "people"
        return _selection_payload(session, kind)


app = create_app()
