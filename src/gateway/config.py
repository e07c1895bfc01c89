"""Gateway configuration: bind address, log level and application path"""

from __future__ import annotations

import importlib
import os
import sys
from dataclasses import dataclass

from gateway_utils.types import Application
from gateway_utils.logging import LEVEL_NAMES

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass
class GatewayConfig:
    """
    Settings consumed by the acceptor.

    Environment variables:
        GATEWAY_HOST       bind host (default: 127.0.0.1)
        GATEWAY_PORT       bind port (default: 8000)
        GATEWAY_LOG_LEVEL  DEBUG, INFO, ... (default: INFO)
        GATEWAY_APP        application as "module:attribute"
        GATEWAY_APP_DIR    directory to import the application from
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    app: str | None = None
    app_dir: str | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> GatewayConfig:
        env = os.environ if environ is None else environ
        try:
            port = int(env.get("GATEWAY_PORT", str(DEFAULT_PORT)))
        except ValueError:
            raise ValueError(f"Invalid GATEWAY_PORT: {env['GATEWAY_PORT']!r}") from None
        return cls(
            host=env.get("GATEWAY_HOST", DEFAULT_HOST),
            port=port,
            log_level=env.get("GATEWAY_LOG_LEVEL", "INFO"),
            app=env.get("GATEWAY_APP"),
            app_dir=env.get("GATEWAY_APP_DIR"),
        )

    def validate(self) -> None:
        """Raise ValueError for settings the acceptor cannot use."""
        # Port 0 lets the OS pick a free port
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.log_level.upper() not in LEVEL_NAMES:
            raise ValueError(f"Invalid log level: {self.log_level!r}")
        if not self.host:
            raise ValueError("Host must not be empty")


def load_app(app_path: str, app_dir: str | None = None) -> Application:
    """
    Import an application from a "module:attribute" string, e.g. "main:app".
    When app_dir is given it is put first on sys.path before importing.
    """
    module_path, sep, attr_name = app_path.partition(":")
    if not sep or not module_path or not attr_name:
        raise ValueError(
            f"Invalid app path: {app_path!r}. Expected format: 'module:attribute'"
        )
    if app_dir is not None and app_dir not in sys.path:
        sys.path.insert(0, app_dir)
    module = importlib.import_module(module_path)
    try:
        app = getattr(module, attr_name)
    except AttributeError:
        raise AttributeError(f"Module '{module_path}' has no attribute '{attr_name}'") from None
    if not callable(app):
        raise TypeError(f"'{app_path}' is not callable")
    return app
