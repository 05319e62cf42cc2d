"""Configuration management for kvassets.

Settings are resolved from, in increasing order of priority:

1. ``wrangler.toml`` (``account_id`` and a ``[[kv_namespaces]]`` binding)
2. Environment variables (``CF_ACCOUNT_ID``, ``CF_API_TOKEN``,
   ``KV_NAMESPACE_ID``, ``KV_API_URL``)
3. Values passed explicitly (usually from CLI options)
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .exceptions import KVConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_BINDING = "ASSETS"


@dataclass
class WranglerSettings:
    """Settings extracted from a wrangler.toml file."""

    account_id: Optional[str] = None
    namespace_id: Optional[str] = None


def load_wrangler_settings(
    path: Path, binding: str = DEFAULT_BINDING, preview: bool = False
) -> WranglerSettings:
    """Read account and namespace ids from a wrangler.toml file.

    Args:
        path: Path to wrangler.toml
        binding: Name of the kv_namespaces binding holding the assets
        preview: Use the binding's ``preview_id`` instead of ``id``

    Returns:
        WranglerSettings (fields are None when not present)

    Raises:
        KVConfigError: If the file exists but is not valid TOML
    """
    if not path.is_file():
        logger.debug(f"No wrangler config at {path}")
        return WranglerSettings()

    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise KVConfigError(f"Invalid TOML in {path}: {e}") from e

    namespace_id = None
    id_field = "preview_id" if preview else "id"
    for namespace in data.get("kv_namespaces", []):
        if isinstance(namespace, dict) and namespace.get("binding") == binding:
            namespace_id = namespace.get(id_field)
            break
    else:
        logger.debug(f"No kv_namespaces binding named {binding} in {path}")

    account_id = data.get("account_id")
    return WranglerSettings(
        account_id=str(account_id) if account_id else None,
        namespace_id=str(namespace_id) if namespace_id else None,
    )


class Config:
    """Resolved connection settings for the Workers KV API."""

    def __init__(self) -> None:
        self._wrangler = WranglerSettings()

    def load_wrangler(
        self,
        path: Path,
        binding: str = DEFAULT_BINDING,
        preview: bool = False,
    ) -> None:
        """Load fallback settings from a wrangler.toml file."""
        self._wrangler = load_wrangler_settings(path, binding, preview)

    @property
    def api_token(self) -> Optional[str]:
        """API token (only ever read from the environment)."""
        return os.environ.get("CF_API_TOKEN") or None

    @property
    def api_url(self) -> str:
        """Base URL of the Cloudflare API."""
        return os.environ.get("KV_API_URL") or DEFAULT_API_URL

    @property
    def account_id(self) -> Optional[str]:
        """Cloudflare account id."""
        return os.environ.get("CF_ACCOUNT_ID") or self._wrangler.account_id

    @property
    def namespace_id(self) -> Optional[str]:
        """Workers KV namespace id holding the assets."""
        return os.environ.get("KV_NAMESPACE_ID") or self._wrangler.namespace_id

    def require(
        self,
        api_token: Optional[str] = None,
        account_id: Optional[str] = None,
        namespace_id: Optional[str] = None,
    ) -> tuple[str, str, str]:
        """Resolve the settings needed to talk to the API.

        Explicit arguments win over environment and wrangler.toml.

        Returns:
            Tuple of (api_token, account_id, namespace_id)

        Raises:
            KVConfigError: If any setting is missing
        """
        token = api_token or self.api_token
        account = account_id or self.account_id
        namespace = namespace_id or self.namespace_id

        missing = []
        if not token:
            missing.append("API token (CF_API_TOKEN)")
        if not account:
            missing.append("account id (CF_ACCOUNT_ID or wrangler.toml)")
        if not namespace:
            missing.append("namespace id (KV_NAMESPACE_ID or wrangler.toml)")
        if missing:
            raise KVConfigError("Missing configuration: " + ", ".join(missing))

        return token, account, namespace  # type: ignore[return-value]


# Global config instance
config = Config()
