"""FastAPI application exposing the LectureHub dashboard API."""

from __future__ import annotations

import asyncio
import contextvars
import json
import logging
import re
import threading
import uuid
from collections import deque
from collections.abc import Mapping, Sequence, Set as AbstractSet
from dataclasses import asdict
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config import AppConfig
from ..logging_utils import DEFAULT_LOG_FORMAT
from ..services.calendar_view import build_week_view
from ..services.catalog import (
    CatalogService,
    DuplicateCodeError,
    RecordNotFoundError,
    ValidationError,
)
from ..services.documents import DocumentNotFoundError, DocumentStore, DocumentStoreError
from ..services.events import emit_structured_event, normalize_context, sanitize_context_value
from ..services.export import (
    attendance_csv_filename,
    render_attendance_csv,
    render_week_schedule_pdf,
    schedule_pdf_filename,
)
from ..services.models import (
    AttendanceEntry,
    Course,
    Department,
    Lecture,
    Program,
    Room,
    Schedule,
    Student,
    User,
    parse_date,
)
from ..services.scheduling import SchedulingError
from ..services.settings import DashboardSettings, SettingsStore, normalize_settings
from ..services.statistics import (
    admin_dashboard,
    lecture_history,
    lecturer_dashboard,
    weekly_attendance,
)


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "lecturehub_request_id",
    default=None,
)
_ACTOR_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "lecturehub_actor",
    default=None,
)

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

_SERVER_LOGGER_PREFIXES: Tuple[str, ...] = ("uvicorn", "gunicorn", "hypercorn")
_DB_SLOW_WARNING_MS = 450.0
_EXPORT_SLOW_WARNING_MS = 1500.0

STORE_UNAVAILABLE_MESSAGE = "The database is unavailable right now. Please try again."


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    context: Dict[str, str] = {}
    request_id = _REQUEST_ID_VAR.get()
    if request_id:
        context["request_id"] = str(request_id)
    actor = _ACTOR_VAR.get()
    if actor:
        context["actor"] = str(actor)
    return context


def _incoming_request_id(scope: Scope) -> Optional[str]:
    for name, value in scope.get("headers") or []:
        if name.lower() == REQUEST_ID_HEADER.lower().encode("latin-1"):
            candidate = value.decode("latin-1").strip()
            if _REQUEST_ID_PATTERN.match(candidate):
                return candidate
    return None


class RequestContextMiddleware:
    """Tag each request with a correlation id, exposed via contextvars and echoed back."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _incoming_request_id(scope) or _new_correlation_id()
        method = scope.get("method")
        actor = f"request:{method.upper()}" if isinstance(method, str) else "request"
        request_token = _REQUEST_ID_VAR.set(request_id)
        actor_token = _ACTOR_VAR.set(actor)

        async def _send_with_request_id(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers") or [])
                headers.append((REQUEST_ID_HEADER.lower().encode("latin-1"), request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, _send_with_request_id)
        finally:
            _ACTOR_VAR.reset(actor_token)
            _REQUEST_ID_VAR.reset(request_token)


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the current request id and actor to each record."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra or {})
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("lecturehub.web.events"), {})


def _emit_debug_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
) -> None:
    emit_structured_event(
        event_type,
        message,
        payload=payload,
        context=context,
        correlation=_collect_correlation_context(),
        duration_ms=duration_ms,
        level=level,
        logger=EVENT_LOGGER,
    )


def _log_event(message: str, **context: Any) -> None:
    _emit_debug_event("APP_EVENT", message, context=context)


def _store_event_emitter(event_type: str, message: str, **kwargs: Any) -> None:
    kwargs.setdefault("level", logging.DEBUG if event_type == "DB_QUERY" else logging.INFO)
    _emit_debug_event(event_type, message, **kwargs)


class DebugLogHandler(logging.Handler):
    """Keep recent log records in memory for the debug console.

    Records that repeat the same event, message, context and payload are
    folded into one entry whose ``count`` and duration statistics grow. Each
    new occurrence moves the entry to the end and gives it a fresh ``id`` so
    clients can poll with ``after=<last id>``.
    """

    _STANDARD_FIELDS: Set[str] = set(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime", "taskName"}
    _DEBUG_FIELDS: Set[str] = {
        "debug_event",
        "debug_event_type",
        "debug_context",
        "debug_payload",
        "debug_correlation",
        "debug_duration_ms",
        "request_id",
        "actor",
    }
    _SEVERITY_RANK: Dict[str, int] = {"error": 3, "warning": 2, "info": 1}

    def __init__(self, capacity: int = 500) -> None:
        super().__init__(level=logging.DEBUG)
        self._capacity = max(1, capacity)
        self._entries: Deque[Dict[str, Any]] = deque()
        self._index: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._last_id = 0
        self._started_at = datetime.now(timezone.utc)
        self.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))

    @staticmethod
    def _duration_of(record: logging.LogRecord) -> Optional[float]:
        value = getattr(record, "debug_duration_ms", None)
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def _payload_of(self, record: logging.LogRecord) -> Dict[str, Any]:
        payload = normalize_context(getattr(record, "debug_payload", None) or {})
        for key, value in record.__dict__.items():
            if key in self._STANDARD_FIELDS or key in self._DEBUG_FIELDS or key.startswith("_"):
                continue
            cleaned = sanitize_context_value(value)
            if cleaned is not None:
                payload[str(key)] = cleaned
        return payload

    @staticmethod
    def _correlation_of(record: logging.LogRecord) -> Dict[str, str]:
        correlation = {
            str(key): str(value)
            for key, value in normalize_context(getattr(record, "debug_correlation", None) or {}).items()
        }
        for name in ("request_id", "actor"):
            value = getattr(record, name, None)
            if value:
                correlation.setdefault(name, str(value))
        return correlation

    @staticmethod
    def _severity_of(
        record: logging.LogRecord, event_type: str, payload: Dict[str, Any], duration_ms: Optional[float]
    ) -> Optional[str]:
        if record.levelno >= logging.ERROR or payload.get("status") == "error" or payload.get("error"):
            return "error"
        threshold = {"DB_QUERY": _DB_SLOW_WARNING_MS, "EXPORT": _EXPORT_SLOW_WARNING_MS}.get(event_type)
        if threshold is not None and duration_ms is not None and duration_ms >= threshold:
            return "warning"
        if record.levelno >= logging.WARNING:
            return "warning"
        return None

    def _freeze(self, value: Any) -> Any:
        """Return a hashable stand-in for *value* so entries can be indexed."""

        if isinstance(value, Mapping):
            return tuple(sorted((str(key), self._freeze(item)) for key, item in value.items()))
        if isinstance(value, AbstractSet):
            return tuple(sorted(str(self._freeze(item)) for item in value))
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            return tuple(self._freeze(item) for item in value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Path):
            return str(value)
        try:
            hash(value)
        except TypeError:
            return str(value)
        return value

    def _entry_key(
        self,
        event_type: str,
        message: str,
        context: Dict[str, Any],
        payload: Dict[str, Any],
        correlation: Dict[str, str],
    ) -> Tuple[Any, ...]:
        return (
            event_type,
            message,
            self._freeze(context),
            self._freeze(payload),
            self._freeze(correlation),
        )

    def _render(self, record: logging.LogRecord) -> str:
        rendered = str(record.getMessage())
        if record.exc_info:
            formatter = self.formatter or logging.Formatter()
            rendered = f"{rendered}\n{formatter.formatException(record.exc_info)}"
        return rendered

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401 - inherited documentation
        rendered = self._render(record)
        debug_event = getattr(record, "debug_event", None)
        message = str(debug_event) if debug_event is not None else rendered
        event_type = str(getattr(record, "debug_event_type", None) or record.name)
        context = normalize_context(getattr(record, "debug_context", None) or {})
        payload = self._payload_of(record)
        duration_ms = self._duration_of(record)
        correlation = self._correlation_of(record)
        severity = self._severity_of(record, event_type, payload, duration_ms)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        category = (
            "server" if record.name.startswith(_SERVER_LOGGER_PREFIXES) else "application"
        )
        key = self._entry_key(event_type, message, context, payload, correlation)

        with self._lock:
            self._last_id += 1
            entry = self._index.get(key)
            if entry is None:
                entry = {
                    "message": message,
                    "event_type": event_type,
                    "category": category,
                    "count": 0,
                    "first_seen": timestamp,
                }
                if context:
                    entry["context"] = context
                if payload:
                    entry["payload"] = payload
                entry.update(correlation)
                self._index[key] = entry
            else:
                self._entries.remove(entry)

            entry["id"] = self._last_id
            entry["count"] += 1
            entry["last_seen"] = timestamp
            entry["level"] = record.levelname
            entry["logger"] = record.name
            if rendered != message:
                entry["rendered"] = rendered
            else:
                entry.pop("rendered", None)
            if duration_ms is not None:
                total = entry.get("total_duration_ms", 0.0) + duration_ms
                entry["total_duration_ms"] = total
                entry["last_duration_ms"] = duration_ms
                entry["average_duration_ms"] = total / entry["count"]
                entry["max_duration_ms"] = max(entry.get("max_duration_ms", duration_ms), duration_ms)
            if severity:
                current = self._SEVERITY_RANK.get(str(entry.get("severity", "")), 0)
                if self._SEVERITY_RANK[severity] >= current:
                    entry["severity"] = severity
            self._entries.append(entry)

            while len(self._entries) > self._capacity:
                dropped = self._entries.popleft()
                self._index = {
                    entry_key: value for entry_key, value in self._index.items() if value is not dropped
                }

    def collect(self, after: Optional[int] = None, limit: int = 200) -> List[Dict[str, Any]]:
        with self._lock:
            entries = [
                dict(entry)
                for entry in self._entries
                if after is None or after <= 0 or entry["id"] > after
            ]
        return entries[-limit:]

    def export_text(self) -> str:
        entries = self.collect(limit=self._capacity)
        if not entries:
            return "# Debug log is currently empty.\n"

        lines: List[str] = []
        for entry in entries:
            line = (
                f"[{entry.get('last_seen', '')}] {entry.get('level', ''):<7} "
                f"{entry.get('event_type', '')}: {entry.get('message', '')}"
            )
            details: List[str] = []
            if entry.get("count", 1) > 1:
                details.append(f"count={entry['count']}")
            if entry.get("severity"):
                details.append(f"severity={entry['severity']}")
            if entry.get("last_duration_ms") is not None:
                details.append(f"duration_ms={float(entry['last_duration_ms']):.3f}")
            for label in ("context", "payload"):
                if entry.get(label):
                    details.append(f"{label}=" + json.dumps(entry[label], ensure_ascii=False, sort_keys=True))
            correlation = {name: entry[name] for name in ("request_id", "actor") if entry.get(name)}
            if correlation:
                details.append("correlation=" + json.dumps(correlation, sort_keys=True))
            if details:
                line = f"{line} | " + " | ".join(details)
            lines.append(line)
        return "\n".join(lines) + "\n"

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def last_id(self) -> int:
        with self._lock:
            return self._last_id


class DepartmentPayload(BaseModel):
    name: str = ""
    code: str = ""
    description: str = ""


class ProgramPayload(BaseModel):
    name: str = ""
    code: str = ""
    department_id: str = ""
    duration: int = 3
    description: str = ""
    is_active: bool = True


class CoursePayload(BaseModel):
    name: str = ""
    code: str = ""
    program_ids: List[str] = Field(default_factory=list)
    year: int = 1
    semester: int = 1
    credit_units: int = 3
    department_id: Optional[str] = None
    description: str = ""
    location: Optional[str] = None
    is_active: bool = True


class CourseLocationPayload(BaseModel):
    location: str = ""


class LecturePayload(BaseModel):
    title: str = ""
    course_id: str = ""
    semester: int = 1
    lecturer_id: Optional[str] = None
    credit_units: Optional[int] = Field(None, ge=0)
    duration_months: int = 3
    description: str = ""
    is_active: bool = True


class LecturerAssignmentPayload(BaseModel):
    lecturer_id: Optional[str] = None


class SchedulePayload(BaseModel):
    title: str = ""
    date: str = ""
    start_time: str = ""
    end_time: str = ""
    course_id: Optional[str] = None
    lecturer_id: Optional[str] = None
    room: str = ""
    topics: List[str] = Field(default_factory=list)
    type: str = "lecture"
    notes: str = ""
    class_rep: str = ""


class RecurringSchedulePayload(SchedulePayload):
    pattern: Optional[str] = None
    occurrences: Optional[int] = None


class TopicsPayload(BaseModel):
    topics: List[str] = Field(default_factory=list)


class StudentPayload(BaseModel):
    name: str = ""
    student_id: str = ""
    course_id: str = ""
    email: str = ""
    enrollment_date: Optional[str] = None
    graduation_date: Optional[str] = None
    phone: str = ""
    address: str = ""
    is_active: bool = True


class UserPayload(BaseModel):
    email: str = ""
    display_name: str = ""
    role: str = ""


class RoomPayload(BaseModel):
    name: str = ""
    building: str = ""
    capacity: Optional[int] = None


class AttendanceEntryPayload(BaseModel):
    student_id: str
    present: bool = False
    time_in: Optional[str] = None


class AttendanceUpdatePayload(BaseModel):
    records: List[AttendanceEntryPayload] = Field(default_factory=list)
    total_students: Optional[int] = Field(None, ge=0)


class AttendancePayload(AttendanceUpdatePayload):
    schedule_id: str = Field(..., min_length=1)


class SettingsPayload(BaseModel):
    theme: Optional[str] = None
    calendar_start_hour: Optional[int] = Field(None, ge=0, le=23)
    calendar_end_hour: Optional[int] = Field(None, ge=0, le=23)
    default_recurrence: Optional[str] = None
    default_occurrences: Optional[int] = Field(None, ge=1)


def _normalize_root_path(value: Optional[str]) -> str:
    if value is None:
        return ""
    normalized = value.strip().rstrip("/")
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized


def _parse_optional_day(value: Optional[str], *, label: str) -> Optional[date]:
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {label} '{value}'. Use YYYY-MM-DD.")
    return parsed


def _parse_day(value: Optional[str], *, default: date, label: str = "date") -> date:
    parsed = _parse_optional_day(value, label=label)
    return default if parsed is None else parsed


def _serialize(record: Any) -> Dict[str, Any]:
    return asdict(record)


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def create_app(
    store: DocumentStore,
    *,
    config: AppConfig,
    root_path: Optional[str] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Return a configured FastAPI application backed by *store*."""

    now = clock or datetime.now
    app = FastAPI(
        title="LectureHub",
        description="Lecturer dashboard, weekly calendar and attendance records",
        root_path=_normalize_root_path(root_path),
    )
    app.state.server = None
    app.state.config = config
    app.state.store = store

    configure_emitter = getattr(store, "configure_event_emitter", None)
    if callable(configure_emitter):
        configure_emitter(_store_event_emitter)

    root_logger = logging.getLogger()
    debug_handler = next(
        (handler for handler in root_logger.handlers if isinstance(handler, DebugLogHandler)),
        None,
    )
    if debug_handler is None:
        debug_handler = DebugLogHandler()
        root_logger.addHandler(debug_handler)
    app.state.debug_log_handler = debug_handler

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    catalog = CatalogService(store)
    settings_store = SettingsStore(config)
    app.state.catalog = catalog
    app.state.settings_store = settings_store

    @app.exception_handler(ValidationError)
    @app.exception_handler(SchedulingError)
    async def _handle_validation_error(_request: Request, error: Exception) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(error)})

    @app.exception_handler(DuplicateCodeError)
    async def _handle_duplicate(_request: Request, error: DuplicateCodeError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(error)})

    @app.exception_handler(RecordNotFoundError)
    @app.exception_handler(DocumentNotFoundError)
    async def _handle_not_found(_request: Request, error: LookupError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(error)})

    @app.exception_handler(DocumentStoreError)
    async def _handle_store_error(request: Request, error: DocumentStoreError) -> JSONResponse:
        LOGGER.error("Document store failure during %s %s: %s", request.method, request.url.path, error)
        return JSONResponse(status_code=503, content={"detail": STORE_UNAVAILABLE_MESSAGE})

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------
    @app.get("/api/departments")
    async def list_departments(search: Optional[str] = None) -> Dict[str, Any]:
        departments = catalog.list_departments(search=search)
        return {"departments": [_serialize(item) for item in departments]}

    @app.post("/api/departments", status_code=status.HTTP_201_CREATED)
    async def create_department(payload: DepartmentPayload) -> Dict[str, Any]:
        _log_event("Creating department", code=payload.code)
        record = catalog.create_department(Department(id=None, **payload.model_dump()))
        return {"department": _serialize(record)}

    @app.get("/api/departments/{department_id}")
    async def get_department(department_id: str) -> Dict[str, Any]:
        return {"department": _serialize(catalog.get_department(department_id))}

    @app.put("/api/departments/{department_id}")
    async def update_department(department_id: str, payload: DepartmentPayload) -> Dict[str, Any]:
        record = catalog.update_department(department_id, Department(id=department_id, **payload.model_dump()))
        return {"department": _serialize(record)}

    @app.delete(
        "/api/departments/{department_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_department(department_id: str) -> Response:
        catalog.delete_department(department_id)
        _log_event("Deleted department", department_id=department_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------
    @app.get("/api/programs")
    async def list_programs(
        department_id: Optional[str] = None, search: Optional[str] = None
    ) -> Dict[str, Any]:
        programs = catalog.list_programs(department_id=department_id, search=search)
        return {"programs": [_serialize(item) for item in programs]}

    @app.get("/api/programs/code-suggestion")
    async def suggest_program_code(name: str = "") -> Dict[str, Any]:
        return {"code": catalog.suggest_program_code(name)}

    @app.post("/api/programs", status_code=status.HTTP_201_CREATED)
    async def create_program(payload: ProgramPayload) -> Dict[str, Any]:
        values = payload.model_dump()
        if not values["code"].strip():
            values["code"] = catalog.suggest_program_code(values["name"])
        _log_event("Creating program", code=values["code"])
        record = catalog.create_program(Program(id=None, **values))
        return {"program": _serialize(record)}

    @app.get("/api/programs/{program_id}")
    async def get_program(program_id: str) -> Dict[str, Any]:
        return {"program": _serialize(catalog.get_program(program_id))}

    @app.put("/api/programs/{program_id}")
    async def update_program(program_id: str, payload: ProgramPayload) -> Dict[str, Any]:
        record = catalog.update_program(program_id, Program(id=program_id, **payload.model_dump()))
        return {"program": _serialize(record)}

    @app.delete(
        "/api/programs/{program_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_program(program_id: str) -> Response:
        catalog.delete_program(program_id)
        _log_event("Deleted program", program_id=program_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------
    @app.get("/api/courses")
    async def list_courses(
        program_id: Optional[str] = None,
        department_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        courses = catalog.list_courses(program_id=program_id, department_id=department_id, search=search)
        return {"courses": [_serialize(item) for item in courses]}

    @app.post("/api/courses", status_code=status.HTTP_201_CREATED)
    async def create_course(payload: CoursePayload) -> Dict[str, Any]:
        _log_event("Creating course", code=payload.code)
        record = catalog.create_course(Course(id=None, **payload.model_dump()))
        return {"course": _serialize(record)}

    @app.get("/api/courses/{course_id}")
    async def get_course(course_id: str) -> Dict[str, Any]:
        return {"course": _serialize(catalog.get_course(course_id))}

    @app.put("/api/courses/{course_id}")
    async def update_course(course_id: str, payload: CoursePayload) -> Dict[str, Any]:
        record = catalog.update_course(course_id, Course(id=course_id, **payload.model_dump()))
        return {"course": _serialize(record)}

    @app.put("/api/courses/{course_id}/location")
    async def update_course_location(course_id: str, payload: CourseLocationPayload) -> Dict[str, Any]:
        record = catalog.update_course_location(course_id, payload.location)
        return {"course": _serialize(record)}

    @app.delete(
        "/api/courses/{course_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_course(course_id: str) -> Response:
        catalog.delete_course(course_id)
        _log_event("Deleted course", course_id=course_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------
    @app.get("/api/lectures")
    async def list_lectures(
        course_id: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        department_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        lectures = catalog.list_lectures(
            course_id=course_id, lecturer_id=lecturer_id, department_id=department_id, search=search
        )
        return {"lectures": [_serialize(item) for item in lectures]}

    @app.post("/api/lectures", status_code=status.HTTP_201_CREATED)
    async def create_lecture(payload: LecturePayload) -> Dict[str, Any]:
        _log_event("Creating lecture", title=payload.title)
        record = catalog.create_lecture(Lecture(id=None, **payload.model_dump()))
        return {"lecture": _serialize(record)}

    @app.get("/api/lectures/{lecture_id}")
    async def get_lecture(lecture_id: str) -> Dict[str, Any]:
        return {"lecture": _serialize(catalog.get_lecture(lecture_id))}

    @app.put("/api/lectures/{lecture_id}")
    async def update_lecture(lecture_id: str, payload: LecturePayload) -> Dict[str, Any]:
        record = catalog.update_lecture(lecture_id, Lecture(id=lecture_id, **payload.model_dump()))
        return {"lecture": _serialize(record)}

    @app.put("/api/lectures/{lecture_id}/lecturer")
    async def assign_lecturer(lecture_id: str, payload: LecturerAssignmentPayload) -> Dict[str, Any]:
        record = catalog.assign_lecturer(lecture_id, payload.lecturer_id)
        return {"lecture": _serialize(record)}

    @app.delete(
        "/api/lectures/{lecture_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_lecture(lecture_id: str) -> Response:
        catalog.delete_lecture(lecture_id)
        _log_event("Deleted lecture", lecture_id=lecture_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------
    @app.get("/api/schedules")
    async def list_schedules(
        lecturer_id: Optional[str] = None,
        course_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        schedules = catalog.list_schedules(
            lecturer_id=lecturer_id,
            course_id=course_id,
            start=_parse_optional_day(start, label="start date"),
            end=_parse_optional_day(end, label="end date"),
            search=search,
        )
        return {"schedules": [_serialize(item) for item in schedules]}

    @app.post("/api/schedules", status_code=status.HTTP_201_CREATED)
    async def create_schedule(payload: SchedulePayload) -> Dict[str, Any]:
        _log_event("Creating schedule", title=payload.title, date=payload.date)
        record = catalog.create_schedule(Schedule(id=None, **payload.model_dump()))
        conflicts = catalog.room_conflicts(record)
        if conflicts:
            LOGGER.warning(
                "Schedule %s overlaps %s booking(s) in room '%s'", record.id, len(conflicts), record.room
            )
        return {"schedule": _serialize(record), "conflicts": [_serialize(item) for item in conflicts]}

    @app.post("/api/schedules/recurring", status_code=status.HTTP_201_CREATED)
    async def create_recurring_schedules(payload: RecurringSchedulePayload) -> Dict[str, Any]:
        values = payload.model_dump(exclude={"pattern", "occurrences"})
        settings = settings_store.load()
        pattern = payload.pattern or settings.default_recurrence
        occurrences = payload.occurrences or settings.default_occurrences
        _log_event(
            "Creating recurring schedule",
            title=payload.title,
            pattern=pattern,
            occurrences=occurrences,
        )
        records = catalog.create_recurring_schedules(
            Schedule(id=None, **values), pattern, occurrences
        )
        series_id = records[0].series_id if records else None
        return {"schedules": [_serialize(item) for item in records], "series_id": series_id}

    @app.get("/api/schedules/{schedule_id}")
    async def get_schedule(schedule_id: str) -> Dict[str, Any]:
        return {"schedule": _serialize(catalog.get_schedule(schedule_id))}

    @app.put("/api/schedules/{schedule_id}")
    async def update_schedule(schedule_id: str, payload: SchedulePayload) -> Dict[str, Any]:
        record = catalog.update_schedule(schedule_id, Schedule(id=schedule_id, **payload.model_dump()))
        conflicts = catalog.room_conflicts(record)
        return {"schedule": _serialize(record), "conflicts": [_serialize(item) for item in conflicts]}

    @app.put("/api/schedules/{schedule_id}/topics")
    async def update_schedule_topics(schedule_id: str, payload: TopicsPayload) -> Dict[str, Any]:
        record = catalog.update_schedule_topics(schedule_id, payload.topics)
        return {"schedule": _serialize(record)}

    @app.delete(
        "/api/schedules/{schedule_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_schedule(schedule_id: str) -> Response:
        catalog.delete_schedule(schedule_id)
        _log_event("Deleted schedule", schedule_id=schedule_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    @app.get("/api/students")
    async def list_students(course_id: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
        students = catalog.list_students(course_id=course_id, search=search)
        return {"students": [_serialize(item) for item in students]}

    @app.get("/api/students/id-suggestion")
    async def suggest_student_id() -> Dict[str, Any]:
        return {"student_id": catalog.suggest_student_id()}

    @app.post("/api/students", status_code=status.HTTP_201_CREATED)
    async def create_student(payload: StudentPayload) -> Dict[str, Any]:
        record = catalog.create_student(Student(id=None, **payload.model_dump()))
        _log_event("Created student", student_id=record.student_id)
        return {"student": _serialize(record)}

    @app.get("/api/students/{student_id}")
    async def get_student(student_id: str) -> Dict[str, Any]:
        return {"student": _serialize(catalog.get_student(student_id))}

    @app.put("/api/students/{student_id}")
    async def update_student(student_id: str, payload: StudentPayload) -> Dict[str, Any]:
        record = catalog.update_student(student_id, Student(id=student_id, **payload.model_dump()))
        return {"student": _serialize(record)}

    @app.delete(
        "/api/students/{student_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_student(student_id: str) -> Response:
        catalog.delete_student(student_id)
        _log_event("Deleted student", student_id=student_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @app.get("/api/users")
    async def list_users(role: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
        users = catalog.list_users(role=role, search=search)
        return {"users": [_serialize(item) for item in users]}

    @app.post("/api/users", status_code=status.HTTP_201_CREATED)
    async def create_user(payload: UserPayload) -> Dict[str, Any]:
        _log_event("Creating user", role=payload.role)
        record = catalog.create_user(User(id=None, **payload.model_dump()))
        return {"user": _serialize(record)}

    @app.get("/api/users/{user_id}")
    async def get_user(user_id: str) -> Dict[str, Any]:
        return {"user": _serialize(catalog.get_user(user_id))}

    @app.put("/api/users/{user_id}")
    async def update_user(user_id: str, payload: UserPayload) -> Dict[str, Any]:
        record = catalog.update_user(user_id, User(id=user_id, **payload.model_dump()))
        return {"user": _serialize(record)}

    @app.delete(
        "/api/users/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_user(user_id: str) -> Response:
        catalog.delete_user(user_id)
        _log_event("Deleted user", user_id=user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------
    @app.get("/api/rooms")
    async def list_rooms(search: Optional[str] = None) -> Dict[str, Any]:
        return {"rooms": [_serialize(item) for item in catalog.list_rooms(search=search)]}

    @app.post("/api/rooms", status_code=status.HTTP_201_CREATED)
    async def create_room(payload: RoomPayload) -> Dict[str, Any]:
        record = catalog.create_room(Room(id=None, **payload.model_dump()))
        return {"room": _serialize(record)}

    @app.get("/api/rooms/{room_id}")
    async def get_room(room_id: str) -> Dict[str, Any]:
        return {"room": _serialize(catalog.get_room(room_id))}

    @app.put("/api/rooms/{room_id}")
    async def update_room(room_id: str, payload: RoomPayload) -> Dict[str, Any]:
        record = catalog.update_room(room_id, Room(id=room_id, **payload.model_dump()))
        return {"room": _serialize(record)}

    @app.delete(
        "/api/rooms/{room_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_room(room_id: str) -> Response:
        catalog.delete_room(room_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def _entries(payload: AttendanceUpdatePayload) -> List[AttendanceEntry]:
        return [AttendanceEntry(**entry.model_dump()) for entry in payload.records]

    @app.get("/api/attendance")
    async def list_attendance(course_id: Optional[str] = None) -> Dict[str, Any]:
        records = catalog.list_attendance(course_id=course_id)
        return {"attendance": [_serialize(item) for item in records]}

    @app.post("/api/attendance", status_code=status.HTTP_201_CREATED)
    async def record_attendance(payload: AttendancePayload) -> Dict[str, Any]:
        record = catalog.record_attendance(
            payload.schedule_id, _entries(payload), total_students=payload.total_students
        )
        _log_event("Recorded attendance", schedule_id=payload.schedule_id, present=record.present_count)
        return {"attendance": _serialize(record)}

    @app.get("/api/attendance/{schedule_id}")
    async def get_attendance_sheet(schedule_id: str) -> Dict[str, Any]:
        schedule, students, attendance = catalog.attendance_sheet(schedule_id)
        return {
            "schedule": _serialize(schedule),
            "students": [_serialize(item) for item in students],
            "attendance": _serialize(attendance) if attendance is not None else None,
        }

    @app.put("/api/attendance/{schedule_id}")
    async def update_attendance(schedule_id: str, payload: AttendanceUpdatePayload) -> Dict[str, Any]:
        record = catalog.record_attendance(
            schedule_id, _entries(payload), total_students=payload.total_students
        )
        return {"attendance": _serialize(record)}

    @app.delete(
        "/api/attendance/{schedule_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    async def delete_attendance(schedule_id: str) -> Response:
        catalog.delete_attendance(schedule_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/api/attendance/{schedule_id}/export")
    async def export_attendance(schedule_id: str) -> Response:
        schedule, students, attendance = catalog.attendance_sheet(schedule_id)
        content = render_attendance_csv(students, attendance)
        filename = attendance_csv_filename(schedule.course_code, schedule.date)
        _log_event("Exported attendance", schedule_id=schedule_id, filename=filename)
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers=_attachment(filename),
        )

    # ------------------------------------------------------------------
    # Calendar and exports
    # ------------------------------------------------------------------
    @app.get("/api/calendar/week")
    async def get_week(
        date: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        course_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        current = now()
        selected = _parse_day(date, default=current.date())
        settings = settings_store.load()
        schedules = catalog.list_schedules(lecturer_id=lecturer_id, course_id=course_id)
        view = build_week_view(
            schedules,
            selected,
            now=current,
            start_hour=settings.calendar_start_hour,
            end_hour=settings.calendar_end_hour,
        )
        return {"week": _serialize(view)}

    @app.get("/api/calendar/week/export")
    async def export_week(
        date: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        course_id: Optional[str] = None,
    ) -> Response:
        current = now()
        selected = _parse_day(date, default=current.date())
        schedules = catalog.list_schedules(lecturer_id=lecturer_id, course_id=course_id)
        content = await asyncio.to_thread(
            render_week_schedule_pdf,
            schedules,
            selected,
            university_name=config.university_name,
            generated_at=current,
        )
        filename = schedule_pdf_filename(config.university_code, selected)
        _log_event("Exported weekly schedule", filename=filename, size=len(content))
        return Response(content=content, media_type="application/pdf", headers=_attachment(filename))

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    @app.get("/api/stats/admin")
    async def get_admin_stats() -> Dict[str, Any]:
        dashboard = admin_dashboard(
            department_count=store.count("departments"),
            users=catalog.list_users(),
            student_count=store.count("students"),
        )
        return {"stats": _serialize(dashboard)}

    @app.get("/api/stats/dashboard")
    async def get_lecturer_stats(
        lecturer_id: Optional[str] = None, course_id: Optional[str] = None
    ) -> Dict[str, Any]:
        schedules = catalog.list_schedules(lecturer_id=lecturer_id)
        dashboard = lecturer_dashboard(
            schedules,
            catalog.attendance_by_schedule(),
            now=now(),
            courses=catalog.list_courses(),
            course_id=course_id,
        )
        return {"stats": _serialize(dashboard)}

    @app.get("/api/stats/weekly-attendance")
    async def get_weekly_attendance(
        lecturer_id: Optional[str] = None,
        course_id: Optional[str] = None,
        weeks: int = 7,
    ) -> Dict[str, Any]:
        if weeks < 1 or weeks > 52:
            raise HTTPException(status_code=400, detail="weeks must be between 1 and 52")
        schedules = catalog.list_schedules(lecturer_id=lecturer_id, course_id=course_id)
        points = weekly_attendance(
            schedules, catalog.attendance_by_schedule(course_id=course_id), now=now(), weeks=weeks
        )
        return {"weeks": [_serialize(point) for point in points]}

    @app.get("/api/history")
    async def get_history(
        lecturer_id: Optional[str] = None, course_id: Optional[str] = None
    ) -> Dict[str, Any]:
        schedules = catalog.list_schedules(lecturer_id=lecturer_id, course_id=course_id)
        entries = lecture_history(
            schedules, catalog.attendance_by_schedule(course_id=course_id), now=now()
        )
        return {"history": [_serialize(entry) for entry in entries]}

    # ------------------------------------------------------------------
    # Settings and diagnostics
    # ------------------------------------------------------------------
    @app.get("/api/settings")
    async def get_settings() -> Dict[str, Any]:
        return {"settings": asdict(settings_store.load())}

    @app.put("/api/settings")
    async def update_settings(payload: SettingsPayload) -> Dict[str, Any]:
        current = asdict(settings_store.load())
        current.update({key: value for key, value in payload.model_dump().items() if value is not None})
        settings: DashboardSettings = settings_store.save(normalize_settings(current))
        _log_event("Saved settings", theme=settings.theme)
        return {"settings": asdict(settings)}

    @app.get("/api/debug/logs")
    async def get_debug_logs(after: Optional[int] = None) -> Dict[str, Any]:
        handler: DebugLogHandler = app.state.debug_log_handler
        entries = handler.collect(after)
        next_marker = handler.last_id if entries else (after or handler.last_id)
        return {"logs": entries, "next": next_marker}

    @app.get("/api/debug/logs/download")
    async def download_debug_logs() -> Response:
        handler: DebugLogHandler = app.state.debug_log_handler
        start_label = handler.started_at.strftime("%Y%m%d-%H%M%S")
        end_label = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        filename = f"{start_label}_to_{end_label}.log"
        return Response(
            content=handler.export_text(),
            media_type="text/plain; charset=utf-8",
            headers=_attachment(filename),
        )

    return app


__all__ = ["DebugLogHandler", "create_app"]
