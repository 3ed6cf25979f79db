"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the class roster backend.
Controllers are intentionally thin: they accept requests, delegate to
`RosterService`, and return JSON responses. Roster errors raised below
them are turned into status codes by a single exception handler.

Endpoints implemented:
- GET /api/kelas
- GET /api/kelas/{namaKelas}
- POST /api/kelas/simpan
- POST /api/kelas/upload
- DELETE /api/kelas/{namaKelas}
- GET /health
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, UploadFile, File, Form, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
import json
import logging
import time
import uuid
from .config import Settings, settings as default_settings
from .database import Database, get_session
from .errors import RosterError, ReadError, ValidationError
from .schemas import ClassNameOut, ClassOut, MessageOut, RosterSaveIn, SaveOut, UploadOut
from .services import RosterService

logger = logging.getLogger("roster_api.api")


def create_app(settings: Optional[Settings] = None, database_url: Optional[str] = None) -> FastAPI:
    """Build the application.

    `database_url` overrides the configured one, which is how tests point
    each app at its own SQLite file.
    """
    settings = settings or default_settings
    db_url = database_url or settings.DATABASE_URL
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(db_url, echo=settings.DB_ECHO)
        db.create_db_and_tables()
        app.state.db = db
        logger.info("store_ready url=%s", db_url)
        try:
            yield
        finally:
            db.close()
            logger.info("store_closed")

    app = FastAPI(title="Class Roster API", lifespan=lifespan)
    app.state.settings = settings

    # Wide-open CORS keeps local HTML frontends working without extra config in dev.
    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(RosterError, roster_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    _register_routes(app)
    return app


def _log_request(event: str, request: Request, started: float, **extra):
    if not request.url.path.startswith("/api"):
        return
    summary = {
        "request_id": getattr(request.state, "request_id", None),
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        **extra,
    }
    log = logger.exception if event == "request_failed" else logger.info
    log("%s %s", event, json.dumps(summary, ensure_ascii=True))


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except Exception:
        _log_request("request_failed", request, started)
        raise
    response.headers["X-Request-ID"] = req_id
    _log_request("request_done", request, started, status_code=response.status_code)
    return response


async def roster_error_handler(request: Request, exc: RosterError):
    if exc.status_code >= 500:
        logger.error(
            "roster_error request_id=%s %s: %s",
            getattr(request.state, "request_id", None), type(exc).__name__, exc,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def _register_routes(app: FastAPI):

    @app.get('/api/kelas', response_model=List[ClassNameOut])
    def list_classes(db: Session = Depends(get_session)):
        """List the names of all stored classes, ascending (for dropdowns)."""
        names = RosterService(db).list_class_names()
        return [ClassNameOut(name=n) for n in names]

    @app.get('/api/kelas/{nama_kelas}', response_model=ClassOut)
    def get_class(nama_kelas: str, db: Session = Depends(get_session)):
        """Return a class with its full roster."""
        row = RosterService(db).get_class(nama_kelas)
        return ClassOut.from_model(row)

    @app.post('/api/kelas/simpan', response_model=SaveOut)
    def save_roster(payload: RosterSaveIn, db: Session = Depends(get_session)):
        """Replace the roster (and marks) of an existing class.

        Both `namaKelas` and `pelajar` are required; an empty `pelajar`
        list is allowed and clears the roster.
        """
        if not payload.class_name or payload.students is None:
            raise ValidationError('Nama kelas atau data pelajar diperlukan.')
        row = RosterService(db).replace_roster(payload.class_name, payload.students)
        return SaveOut(message='Data berjaya disimpan!', saved_data=ClassOut.from_model(row))

    @app.post('/api/kelas/upload', response_model=UploadOut)
    def upload_roster(
        csvFile: Optional[UploadFile] = File(default=None),
        namaKelas: Optional[str] = Form(default=None),
        db: Session = Depends(get_session),
    ):
        """Create or replace a class roster from an uploaded CSV file.

        The first line of the file is a header; each following row is
        `name,id`. The uploaded file is released on every exit path.
        """
        if csvFile is None:
            raise ValidationError('Tiada fail dimuat naik.')
        max_bytes = app.state.settings.MAX_UPLOAD_BYTES
        try:
            if not namaKelas:
                raise ValidationError('Nama Kelas diperlukan untuk muat naik.')
            try:
                content = csvFile.file.read(max_bytes + 1)
            except OSError as e:
                raise ReadError('Ralat membaca fail CSV.') from e
            if len(content) > max_bytes:
                raise ValidationError('Fail terlalu besar.')
        finally:
            csvFile.file.close()
        row, _outcome = RosterService(db).import_roster(namaKelas, content)
        return UploadOut(
            message='Senarai pelajar berjaya dimuat naik dan disimpan!',
            class_data=ClassOut.from_model(row),
        )

    @app.delete('/api/kelas/{nama_kelas}', response_model=MessageOut)
    def delete_class(nama_kelas: str, db: Session = Depends(get_session)):
        """Delete a class and all of its students."""
        RosterService(db).delete_class(nama_kelas)
        return MessageOut(message='Kelas berjaya dipadam!')

    @app.get("/health")
    def health():
        """Lightweight health check for uptime monitoring."""
        return {"status": "ok"}


app = create_app()
