"""FastAPI application for the marginalia local JSON API."""

import asyncio
import contextlib
import logging
import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ..core.annotate import extract_annotations
from ..core.model import MatchSpan, Note, SearchOptions, TextSegment
from ..core.ports import NoteNotFoundError, PersistenceError
from ..core.search import find_matches
from ..core.segments import build_segments
from ..session import FindReplaceController, SessionRegistry

logger = logging.getLogger(__name__)


class OpenSessionRequest(BaseModel):
    note_id: str


class FindRequest(BaseModel):
    query: str
    case_sensitive: bool | None = None
    whole_word: bool | None = None


class ReplaceRequest(BaseModel):
    replacement: str


def _segment_json(seg: TextSegment) -> dict[str, Any]:
    return {"text": seg.text, "tag": seg.tag, "start": seg.start, "payload": seg.payload}


def _match_json(m: MatchSpan) -> dict[str, int]:
    return {"start": m.start, "length": m.length}


def _session_json(sid: str, controller: FindReplaceController) -> dict[str, Any]:
    return {
        "id": sid,
        "note_id": controller.note.id,
        "state": controller.state,
        "query": controller.query,
        "options": {
            "case_sensitive": controller.options.case_sensitive,
            "whole_word": controller.options.whole_word,
        },
        "matches": [_match_json(m) for m in controller.matches],
        "current_index": controller.current_index,
    }


def _persistence_error(e: PersistenceError) -> HTTPException:
    if isinstance(e, NoteNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


def create_app(
    runtime: Any,
    token: str | None = None,
    enable_cors: bool = False,
    watch: bool = False,
) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with vault, store and note cache
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware
        watch: Invalidate cached notes when vault files change

    Returns:
        FastAPI application instance
    """
    sessions = SessionRegistry()

    async def apply_vault_batch(changed: set[str], deleted: set[str]) -> None:
        """Invalidate cached notes and bring open sessions up to date with disk."""
        from ..watch import invalidate_batch

        invalidate_batch(runtime, changed, deleted)
        for note_id in sorted(changed | deleted):
            entries = sessions.entries_for_note(note_id)
            if not entries:
                continue
            try:
                note = await runtime.notes.load(note_id)
            except NoteNotFoundError:
                for sid, _, _ in entries:
                    sessions.close(sid)
                logger.info("Closed %d session(s) on deleted note %s", len(entries), note_id)
                continue
            except PersistenceError as e:
                logger.warning("Could not reload note %s: %s", note_id, e)
                continue
            for _, controller, lock in entries:
                async with lock:
                    controller.refresh(note)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        if not watch:
            yield
            return

        from ..watch import start_observer

        batches: list[tuple[set[str], set[str]]] = []
        observer, handler = start_observer(
            runtime,
            runtime.config.watch.debounce_ms,
            on_batch=lambda changed, deleted: batches.append((changed, deleted)),
        )

        async def flush_loop() -> None:
            while True:
                await asyncio.sleep(0.1)
                handler.check_and_flush()
                while batches:
                    changed, deleted = batches.pop(0)
                    await apply_vault_batch(changed, deleted)

        task = asyncio.create_task(flush_loop())
        try:
            yield
        finally:
            task.cancel()
            observer.stop()
            observer.join()

    app = FastAPI(
        title="Marginalia API",
        description="Link annotation and find/replace over a note vault",
        version="0.1.0",
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
        lifespan=lifespan,
    )
    app.state.sessions = sessions
    app.state.apply_vault_batch = apply_vault_batch

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Security setup
    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    async def load(note_id: str) -> Note:
        try:
            return await runtime.notes.load(note_id)
        except PersistenceError as e:
            raise _persistence_error(e) from e

    def session_or_404(sid: str) -> tuple[FindReplaceController, asyncio.Lock]:
        entry = sessions.get(sid)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Session {sid} not found")
        return entry

    def note_saved(controller: FindReplaceController) -> None:
        runtime.resolver.invalidate()
        for other in sessions.for_note(controller.note.id):
            if other is not controller:
                other.refresh(controller.note)

    @app.get("/health")
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "cached_notes": len(runtime.cache), "sessions": len(sessions)}

    @app.get("/notes/{note_id}")
    async def get_note(note_id: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Get note metadata and body."""
        note = await load(note_id)
        return {
            "id": note.id,
            "title": note.title,
            "tags": note.meta.get_list("tags"),
            "meta": dict(note.meta),
            "body": note.content,
        }

    @app.get("/notes/{note_id}/annotations")
    async def annotations(note_id: str, auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        """Links and URLs in the note body, in order."""
        note = await load(note_id)
        return [
            {"kind": s.kind, "start": s.start, "end": s.end, "payload": s.payload}
            for s in extract_annotations(note.content)
        ]

    @app.get("/notes/{note_id}/segments")
    async def segments(
        note_id: str,
        q: str | None = Query(None, description="Highlight matches of this query"),
        case_sensitive: bool = Query(False),
        whole_word: bool = Query(False),
        current: int = Query(0, ge=0, description="1-based current match"),
        auth: None = Depends(verify_token),
    ) -> list[dict[str, Any]]:
        """Renderable segments: links/URLs, or search matches when q is given."""
        note = await load(note_id)
        if q:
            options = SearchOptions(case_sensitive=case_sensitive, whole_word=whole_word)
            spans: list[Any] = find_matches(note.content, q, options)
        else:
            spans = extract_annotations(note.content)
        return [_segment_json(s) for s in build_segments(note.content, spans, current)]

    @app.get("/notes/{note_id}/backlinks")
    async def backlinks(note_id: str, auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        """Notes that link to this note by title."""
        note = await load(note_id)
        ids = await asyncio.to_thread(runtime.resolver.backlinks, note.title)
        return [{"id": nid} for nid in ids if nid != note.id]

    @app.post("/sessions", status_code=201)
    async def open_session(
        body: OpenSessionRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Open a find/replace session on a note."""
        note = await load(body.note_id)
        controller = FindReplaceController(
            note, runtime.store, cache=runtime.cache, options=runtime.search_options
        )
        sid = sessions.open(controller)
        return _session_json(sid, controller)

    @app.get("/sessions/{sid}")
    async def get_session(sid: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        controller, _ = session_or_404(sid)
        return _session_json(sid, controller)

    @app.post("/sessions/{sid}/find")
    async def find(sid: str, body: FindRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        controller, lock = session_or_404(sid)
        async with lock:
            options = SearchOptions(
                case_sensitive=(
                    controller.options.case_sensitive
                    if body.case_sensitive is None
                    else body.case_sensitive
                ),
                whole_word=controller.options.whole_word if body.whole_word is None else body.whole_word,
            )
            controller.find(body.query, options)
        return _session_json(sid, controller)

    @app.post("/sessions/{sid}/next")
    async def next_match(sid: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        controller, lock = session_or_404(sid)
        async with lock:
            controller.next()
        return _session_json(sid, controller)

    @app.post("/sessions/{sid}/previous")
    async def previous_match(sid: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        controller, lock = session_or_404(sid)
        async with lock:
            controller.previous()
        return _session_json(sid, controller)

    @app.post("/sessions/{sid}/replace")
    async def replace(sid: str, body: ReplaceRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        controller, lock = session_or_404(sid)
        async with lock:
            try:
                replaced = await controller.replace(body.replacement)
            except PersistenceError as e:
                raise _persistence_error(e) from e
            if replaced:
                note_saved(controller)
        return {"replaced": int(replaced), **_session_json(sid, controller)}

    @app.post("/sessions/{sid}/replace-all")
    async def replace_all(
        sid: str, body: ReplaceRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        controller, lock = session_or_404(sid)
        async with lock:
            try:
                count = await controller.replace_all(body.replacement)
            except PersistenceError as e:
                raise _persistence_error(e) from e
            if count:
                note_saved(controller)
        return {"replaced": count, **_session_json(sid, controller)}

    @app.get("/sessions/{sid}/segments")
    async def session_segments(sid: str, auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        controller, _ = session_or_404(sid)
        return [_segment_json(s) for s in controller.segments()]

    @app.delete("/sessions/{sid}", status_code=204)
    async def close_session(sid: str, auth: None = Depends(verify_token)) -> None:
        session_or_404(sid)
        sessions.close(sid)

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
