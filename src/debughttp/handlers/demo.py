"""
Demo provider: a smoke-test endpoint set for checking that a listener,
the request parser and both renderers work end to end.

    curl http://localhost:8080/
    curl http://localhost:8080/json
    curl "http://localhost:8080/test?param=value"
"""

from html import escape

from .. import __version__
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..render.json_builder import JsonBuilder
from ..render.template import Template
from .base import InfoProvider


DEMO_PORT = 8080

INDEX_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>{{title}}</title>
    <style>
        body { font-family: monospace; background: #1e1e2e; color: #cdd6f4; padding: 20px; }
        h1 { color: #89b4fa; }
        a { color: #a6e3a1; }
        .info { background: #313244; padding: 10px; margin: 10px 0; border-radius: 5px; }
    </style>
</head>
<body>
    <h1>{{title}}</h1>
    <div class="info">
        <p>Server is running.</p>
        <p>Endpoints:</p>
        <ul>
{{#endpoints}}            <li><a href="{{href}}">{{href}}</a> - {{description}}</li>
{{/endpoints}}        </ul>
    </div>
</body>
</html>
"""

QUERY_PAGE = """<!DOCTYPE html>
<html>
<head><title>Query Parameter Test</title></head>
<body>
    <h1>Query Parameter Test</h1>
    <p>param = {{param}}</p>
{{?has_params}}    <p>All query params:</p>
    <ul>
{{#params}}        <li>{{key}} = {{value}}</li>
{{/params}}    </ul>
{{/has_params}}{{!has_params}}    <p>No query parameters.</p>
{{/has_params}}</body>
</html>
"""


class DemoProvider(InfoProvider):
    """Serves /, /index.html, /json and /test."""

    name = "demo"

    def __init__(self, port: int = DEMO_PORT, title: str = "Debug Server - Test Page"):
        self.port = port
        self.title = title

    def routes(self):
        return {
            "/": self.index,
            "/index.html": self.index,
            "/json": self.json,
            "/test": self.query_echo,
        }

    def index(self, request: HTTPRequest, response: HTTPResponse) -> None:
        page = Template(INDEX_PAGE)
        page.set_variable("title", escape(self.title))
        page.set_array("endpoints", [
            {"href": "/", "description": "This page"},
            {"href": "/json", "description": "JSON response"},
            {"href": "/test?param=value", "description": "Query parameter test"},
        ])
        response.send_html(page.render())

    def json(self, request: HTTPRequest, response: HTTPResponse) -> None:
        builder = JsonBuilder()
        builder.begin_object()
        builder.add("status", "ok")
        builder.add("server", response.server_name)
        builder.add("version", __version__)
        builder.add("message", "JSON endpoint working")
        builder.end_object()

        if request.get_query("pretty") is not None:
            response.send_json(builder.to_pretty_string())
        else:
            response.send_json(builder)

    def query_echo(self, request: HTTPRequest, response: HTTPResponse) -> None:
        page = Template(QUERY_PAGE)
        page.set_variable("param", escape(request.get_query("param", "(not set)")))
        page.set_condition("has_params", bool(request.query_params))
        page.set_array("params", [
            {"key": escape(key), "value": escape(value)}
            for key, value in request.query_params.items()
        ])
        response.send_html(page.render())
