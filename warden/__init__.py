"""Internal modules that back the public :mod:`warden` API."""

from . import constants as _constants
from . import helpers as _helpers
from . import runtime as _runtime
from .constants import *  # noqa: F401,F403
from .helpers import *  # noqa: F401,F403
from .runtime import *  # noqa: F401,F403

__all__ = []
__all__ += getattr(_constants, "__all__", [])
__all__ += getattr(_helpers, "__all__", [])
__all__ += getattr(_runtime, "__all__", [])
