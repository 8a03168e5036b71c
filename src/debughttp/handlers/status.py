"""
=============================================================================
STATUS PROVIDER
=============================================================================

Reports on the ListenerGroup it is served from.

    /              HTML overview, one row per listener
    /api/status    JSON, add ?pretty=1 for indented output
    /health        JSON liveness report with uptime; 503 if any listener
                   in the group is down

    GET /api/status
    {"running":true,"listeners":[{"name":"demo","port":8080,
     "running":true,"error":""}, ...],"last_error":""}

The provider holds a reference to the group and reads its status on
every request, so it always shows live state.

=============================================================================
"""

import platform
import sys
import time
from html import escape
from typing import Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from ..render.json_builder import JsonBuilder
from ..render.template import Template
from .base import InfoProvider


STATUS_PORT = 65500

PARTIALS = {
    "header": """<!DOCTYPE html>
<html>
<head>
    <title>{{title}}</title>
    <style>
        body { font-family: monospace; background: #1e1e2e; color: #cdd6f4; padding: 20px; }
        table { border-collapse: collapse; }
        td, th { padding: 4px 12px; text-align: left; }
        .up { color: #a6e3a1; }
        .down { color: #f38ba8; }
    </style>
</head>
<body>
<h1>{{title}}</h1>
""",
    "footer": """<hr>
<p><small>{{server}} &middot; up {{uptime}}s</small></p>
</body>
</html>
""",
}

STATUS_PAGE = """{{>header}}<table>
<tr><th>#</th><th>Name</th><th>Port</th><th>State</th><th>Error</th></tr>
{{#listeners}}<tr><td>{{_index1}}</td><td><a href="{{url}}">{{name}}</a></td><td>{{port}}</td>{{?running}}<td class="up">running</td>{{/running}}{{!running}}<td class="down">stopped</td>{{/running}}<td>{{error}}</td></tr>
{{/listeners}}</table>
{{?last_error}}<p class="down">Last start error: {{last_error}}</p>
{{/last_error}}{{>footer}}"""


class StatusProvider(InfoProvider):
    """Status pages for a ListenerGroup."""

    name = "status"

    def __init__(self, group, port: int = STATUS_PORT, title: str = "Debug Listeners"):
        self.group = group
        self.port = port
        self.title = title
        self._start_time = time.time()

    @property
    def uptime(self) -> float:
        return time.time() - self._start_time

    def routes(self):
        return {
            "/": self.overview,
            "/api/status": self.api_status,
            "/health": self.health,
        }

    # =========================================================================
    # ROUTES
    # =========================================================================

    def overview(self, request: HTTPRequest, response: HTTPResponse) -> None:
        page = Template(STATUS_PAGE, partial_resolver=PARTIALS.get)
        page.set_variable("title", escape(self.title))
        page.set_variable("server", escape(response.server_name))
        page.set_variable("uptime", int(self.uptime))
        page.set_variable("last_error", escape(self.group.last_error))

        for status in self.group.status():
            listener = self.group.get(status.name)
            page.add_array_item("listeners", {
                "name": escape(status.name),
                "port": status.port,
                "running": "true" if status.running else "",
                "error": escape(status.error),
                "url": escape(listener.url if listener else "#", quote=True),
            })

        response.send_html(page.render())

    def api_status(self, request: HTTPRequest, response: HTTPResponse) -> None:
        builder = JsonBuilder()
        builder.begin_object()
        builder.add("running", self.group.is_running)
        builder.begin_array("listeners")
        for status in self.group.status():
            builder.begin_object()
            builder.add("name", status.name)
            builder.add_integer("port", status.port, bits=16, signed=False)
            builder.add("running", status.running)
            builder.add("error", status.error)
            builder.end_object()
        builder.end_array()
        builder.add("last_error", self.group.last_error)
        builder.end_object()

        response.send_json(self._render(builder, request))

    def health(self, request: HTTPRequest, response: HTTPResponse) -> None:
        statuses = self.group.status()
        healthy = all(status.running for status in statuses)

        builder = JsonBuilder()
        builder.begin_object()
        builder.add("status", "healthy" if healthy else "unhealthy")
        builder.add("uptime_seconds", self.uptime, precision=1)
        builder.add_integer("listeners", len(statuses))
        builder.add_integer("running", sum(1 for status in statuses if status.running))
        builder.begin_object("system")
        builder.add("python_version", sys.version.split()[0])
        builder.add("platform", platform.system())
        builder.add("hostname", platform.node())
        builder.end_object()
        builder.end_object()

        if not healthy:
            response.set_status(HTTPStatus.SERVICE_UNAVAILABLE)
        response.send_json(self._render(builder, request))

    @staticmethod
    def _render(builder: JsonBuilder, request: HTTPRequest) -> str:
        pretty: Optional[str] = request.get_query("pretty")
        if pretty not in (None, "", "0", "false"):
            return builder.to_pretty_string()
        return builder.to_string()
