"""HTTP server for GitHub webhooks, direct commands and health checks."""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict

from hookrelay.commands import CommandHandler, make_command_handler
from hookrelay.config import AppConfig
from hookrelay.dispatcher import EventDispatcher, make_dispatcher
from hookrelay.models import InboundEvent, WebhookResponse

LOG = logging.getLogger("hookrelay.server")


class WebhookHandler(BaseHTTPRequestHandler):
    """Handle GET /health, POST <webhook_path> and POST <commands_path>."""

    config: AppConfig
    dispatcher: EventDispatcher
    commands: CommandHandler

    def do_GET(self) -> None:
        if self.path == "/health" or self.path == "/":
            self._send_json(200, {"status": "ok", "service": "hookrelay"})
            return
        self._send_json(404, {"error": "Not found"})

    def do_POST(self) -> None:
        try:
            if self.path == self.config.github.webhook_path:
                self._handle_github_webhook()
                return
            if self.path == self.config.commands.path:
                self._handle_command()
                return
            self._send_json(404, {"error": "Not found"})
        except Exception as e:
            LOG.exception("Request error on %s %s: %s", self.command, self.path, e)
            self._send_json(500, {"error": "Internal server error"})

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length", 0) or 0)
        return self.rfile.read(length) if length else b""

    def _handle_github_webhook(self) -> None:
        event = InboundEvent.from_http(self.headers, self._read_body())
        self._respond(self.dispatcher.handle(event))

    def _handle_command(self) -> None:
        body = self._read_body()
        try:
            data = json.loads(body.decode("utf-8")) if body else {}
        except (UnicodeDecodeError, json.JSONDecodeError):
            LOG.warning("Invalid command request JSON")
            self._send_json(400, {"error": "Invalid JSON payload"})
            return
        if not isinstance(data, dict):
            self._send_json(400, {"error": "Invalid JSON payload"})
            return
        self._respond(self.commands.handle(data))

    def _respond(self, response: WebhookResponse) -> None:
        self._send_json(response.status_code, response.body)

    def _send_json(self, status: int, body: Dict[str, Any]) -> None:
        data = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format: str, *args: Any) -> None:
        LOG.debug(format, *args)


def make_server(
    config: AppConfig,
    dispatcher: EventDispatcher | None = None,
    commands: CommandHandler | None = None,
) -> ThreadingHTTPServer:
    """Build (but do not start) the HTTP server; one thread per request."""
    if dispatcher is None:
        dispatcher = make_dispatcher(config)
    if commands is None:
        commands = make_command_handler(config, executor=dispatcher.executor)
    handler = type(
        "BoundWebhookHandler",
        (WebhookHandler,),
        {"config": config, "dispatcher": dispatcher, "commands": commands},
    )
    return ThreadingHTTPServer((config.server.host, config.server.port), handler)


def run_server(config: AppConfig) -> None:
    """Run HTTP server for webhooks, direct commands and health check."""
    server = make_server(config)
    host, port = server.server_address[:2]
    LOG.info("Server listening on %s:%s", host, port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
