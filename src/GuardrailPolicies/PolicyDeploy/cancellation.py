"""Cooperative cancellation for a deployment run.

Workers check the run's :class:`CancellationToken` before starting each
package; uploads already in flight are allowed to finish so every package ends
with a recorded outcome.  The CLI cancels the token on ``SIGINT``.
"""

from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("operator interrupt")
        >>> token.is_cancelled(), token.reason
        (True, 'operator interrupt')
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            if not self._is_cancelled.is_set():
                self._reason = reason
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._is_cancelled.wait(timeout)


__all__ = ["CancellationToken"]
# === NAVMAP v1 ===
# {
#   "module": "GuardrailPolicies.PolicyDeploy.cancellation",
#   "purpose": "Provide the cooperative cancellation token checked by deployment workers",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
