"""Optional call-site identity resolution.

Identity is normally passed explicitly on each call. When a gateway is
configured with ``auto_identity``, ``caller_identity`` derives one from
the first stack frame outside this package, as ``module:function``.
"""

from __future__ import annotations

import sys
from collections.abc import Callable

IdentityResolver = Callable[[], "str | None"]

_PACKAGE_PREFIX = "logs_gateway"


def caller_identity() -> str | None:
    frame = sys._getframe(1)
    while frame is not None:
        module = frame.f_globals.get("__name__", "")
        if module != _PACKAGE_PREFIX and not module.startswith(_PACKAGE_PREFIX + "."):
            return f"{module}:{frame.f_code.co_name}"
        frame = frame.f_back
    return None
