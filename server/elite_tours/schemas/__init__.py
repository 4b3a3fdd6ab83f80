"""Pydantic schemas for request/response validation."""

from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .custom_tour import *  # noqa: F403
from .health import *  # noqa: F403
from .payment import *  # noqa: F403
from .settings import *  # noqa: F403
from .tour import *  # noqa: F403
from .user import *  # noqa: F403
from .validation import validate  # noqa: F401
