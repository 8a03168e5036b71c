"""
Ready-made handlers.

    InfoProvider     base class: name + port + path table + availability
    StatusProvider   reports on a ListenerGroup (/, /api/status, /health)
    DemoProvider     smoke-test pages (/, /json, /test)

Any plain ``handler(request, response)`` function works just as well;
providers are a convenience, not a requirement.
"""

from .base import InfoProvider, Route
from .demo import DEMO_PORT, DemoProvider
from .status import STATUS_PORT, StatusProvider

__all__ = [
    "InfoProvider",
    "Route",
    "DemoProvider",
    "DEMO_PORT",
    "StatusProvider",
    "STATUS_PORT",
]
