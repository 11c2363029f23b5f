"""Bind MCP session ids to long-lived streamable HTTP transports."""

from __future__ import annotations

import contextlib
import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel.server import Server as MCPServer
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from .errors import MissingSessionError, PayloadTooLargeError, SessionError, UnknownSessionError

logger = logging.getLogger(__name__)

SessionState = Literal["uninitialized", "active", "closed"]
TransportFactory = Callable[[str], Any]
MAX_BODY_BYTES = 1024 * 1024


@dataclass
class Session:
    """A logical MCP connection and the transport that serves it."""

    session_id: str
    transport: Any
    state: SessionState = "uninitialized"
    created_at: float = field(default_factory=time.time)


def is_initialize_request(body: bytes) -> bool:
    """Return True if ``body`` is a JSON-RPC ``initialize`` request."""
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return False
    return isinstance(payload, dict) and payload.get("method") == "initialize"


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand an already-read request body to the next reader, then defer to ``receive``."""
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def _jsonrpc_error(code: int, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None},
        status_code=status_code,
    )


class SessionMultiplexer:
    """Route MCP traffic to one transport per session.

    A request without a session id must be an ``initialize`` request; it gets
    a fresh transport whose session is registered once the transport has
    answered the initialization successfully. Requests naming a registered
    session go to its transport. Sessions leave the map when their transport's
    server loop ends.

    Use ``run()`` in the application lifespan; it can be entered once.
    """

    def __init__(
        self,
        server: MCPServer[Any, Any],
        *,
        json_response: bool = False,
        max_body_bytes: int = MAX_BODY_BYTES,
        transport_factory: TransportFactory | None = None,
        session_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.server = server
        self.json_response = json_response
        self.max_body_bytes = max_body_bytes
        self._transport_factory = transport_factory or self._create_transport
        self._session_id_factory = session_id_factory or (lambda: uuid4().hex)
        self._sessions: dict[str, Session] = {}
        self._task_group: TaskGroup | None = None
        self._run_lock = anyio.Lock()
        self._has_started = False

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the task group that runs every session's server loop."""
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError(
                    "SessionMultiplexer.run() can only be called once per instance."
                )
            self._has_started = True

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Session multiplexer started")
            try:
                yield
            finally:
                logger.info("Session multiplexer shutting down")
                tg.cancel_scope.cancel()
                self._task_group = None
                for session in self._sessions.values():
                    session.state = "closed"
                self._sessions.clear()

    async def route_session_request(self, session_id: str | None, is_init: bool) -> Session:
        """Return the session that should handle a request.

        Raises:
            MissingSessionError: No session id and not an initialization request.
            UnknownSessionError: The session id is not registered.
        """
        if session_id is None:
            if not is_init:
                raise MissingSessionError()
            return await self._open_session()

        session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    async def dispatch(
        self,
        session_id: str | None,
        is_init: bool,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Route a request and forward it to the session's transport."""
        session = await self.route_session_request(session_id, is_init)
        if session.state != "uninitialized":
            await session.transport.handle_request(scope, receive, send)
            return

        status_code: int | None = None

        async def capture_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        activated = False
        try:
            await session.transport.handle_request(scope, receive, capture_status)
            if status_code is not None and 200 <= status_code < 300:
                activated = self._activate(session)
        finally:
            if not activated:
                logger.info("Discarding session %s after failed initialization", session.session_id)
                await session.transport.terminate()

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point for the MCP endpoint."""
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            is_init = False
            if request.method == "POST":
                body = await self._read_body(request)
                is_init = is_initialize_request(body)
                receive = _replay_body(body, receive)
            await self.dispatch(session_id, is_init, scope, receive, tracking_send)
        except (SessionError, PayloadTooLargeError) as exc:
            response = _jsonrpc_error(exc.jsonrpc_code, exc.message, exc.status_code or 400)
            await response(scope, receive, send)
        except Exception as exc:
            logger.exception("Error handling MCP %s request", request.method)
            if not response_started:
                response = _jsonrpc_error(-32603, str(exc) or "Internal error", 500)
                await response(scope, receive, send)

    async def _read_body(self, request: Request) -> bytes:
        """Read a POST body, refusing anything over ``max_body_bytes``."""
        content_length = request.headers.get("content-length", "")
        if content_length.isdigit() and int(content_length) > self.max_body_bytes:
            raise PayloadTooLargeError(self.max_body_bytes)

        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > self.max_body_bytes:
                raise PayloadTooLargeError(self.max_body_bytes)
        return bytes(body)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _create_transport(self, session_id: str) -> StreamableHTTPServerTransport:
        return StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
        )

    async def _open_session(self) -> Session:
        if self._task_group is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")

        session_id = self._session_id_factory()
        session = Session(session_id=session_id, transport=self._transport_factory(session_id))
        await self._task_group.start(self._run_session, session)
        logger.debug("Created transport for new session %s", session_id)
        return session

    def _activate(self, session: Session) -> bool:
        if session.state != "uninitialized":
            return False
        session.state = "active"
        self._sessions[session.session_id] = session
        logger.info("Session %s initialized", session.session_id)
        return True

    def _close(self, session: Session) -> None:
        session.state = "closed"
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
            logger.info("Session %s closed", session.session_id)

    async def _run_session(
        self,
        session: Session,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Run the MCP server over a session's transport until it closes."""
        try:
            async with session.transport.connect() as streams:
                read_stream, write_stream = streams
                task_status.started()
                try:
                    await self.server.run(
                        read_stream,
                        write_stream,
                        self.server.create_initialization_options(),
                        stateless=False,
                    )
                except Exception:
                    logger.exception("Session %s crashed", session.session_id)
        finally:
            self._close(session)
