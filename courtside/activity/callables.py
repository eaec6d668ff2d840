"""Client for the Firebase callable functions behind application commands."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-central1"
DEFAULT_TIMEOUT = 10


class CallableError(Exception):
    """A callable function failed.

    ``code`` is the canonical error code in lower-case dashed form, e.g.
    ``not-found`` or ``already-exists``.
    """

    def __init__(self, code: str, message: str = "") -> None:
        """Initialize the error."""
        super().__init__(message or code)
        self.code = code
        self.message = message


def _normalize_code(status: Any) -> str:
    code = str(status or "internal").lower().replace("_", "-")
    if code.startswith("functions/"):
        code = code[len("functions/") :]
    return code


class CallableClient:
    """Invoke callable functions over HTTPS on behalf of a signed-in user."""

    def __init__(
        self,
        base_url: str,
        id_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Create a client for ``base_url`` authenticated with ``id_token``."""
        self.base_url = (base_url or "").rstrip("/")
        self.id_token = id_token
        self.timeout = timeout
        self.session = session

    @classmethod
    def from_config(
        cls, config: dict[str, Any], id_token: Optional[str] = None
    ) -> CallableClient:
        """Build a client from Flask config values."""
        return cls(
            config.get("FUNCTIONS_BASE_URL") or "",
            id_token=id_token,
            timeout=float(config.get("FUNCTIONS_TIMEOUT") or DEFAULT_TIMEOUT),
        )

    def call(self, name: str, payload: dict[str, Any]) -> Any:
        """Call function ``name`` and return its ``result``.

        Raises:
            CallableError: If the function reports an error or cannot be reached.
        """
        if not self.base_url:
            raise CallableError("unavailable", "Callable functions are not configured")
        headers = {"Content-Type": "application/json"}
        if self.id_token:
            headers["Authorization"] = f"Bearer {self.id_token}"
        data = {k: v for k, v in payload.items() if v is not None}
        post = self.session.post if self.session is not None else requests.post

        try:
            response = post(
                f"{self.base_url}/{name}",
                json={"data": data},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Callable {name} unreachable: {e}")
            raise CallableError("unavailable", str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        error = body.get("error") if isinstance(body, dict) else None
        if error or not response.ok:
            error = error or {}
            code = _normalize_code(error.get("status") or f"http-{response.status_code}")
            message = error.get("message", "")
            logger.warning(f"Callable {name} failed with {code}: {message}")
            raise CallableError(code, message)

        if not isinstance(body, dict):
            raise CallableError("internal", f"Unexpected response from {name}")
        return body.get("result")
