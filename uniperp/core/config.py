import json
import os
from pathlib import Path
from typing import Any

from uniperp.core.constants.chains import (
    CHAIN_CODE_TO_ID,
    DEFAULT_CHAIN_ID,
    DEFAULT_RPC_URLS,
)

_CONFIG_ENV_KEYS = ("UNIPERP_CONFIG_PATH", "UNIPERP_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"

# Checked in order; the first non-empty value wins over config.json.
_RPC_ENV_KEYS = ("RPC_URL", "UNICHAIN_SEPOLIA_RPC_URL")
_CHAIN_ID_ENV_KEY = "CHAIN_ID"
_PRIVATE_KEY_ENV_KEY = "PRIVATE_KEY"
_MIN_PRIVATE_KEY_LENGTH = 10


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file {cfg_path}: {exc}") from exc


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    Modules that imported CONFIG at import time see the update.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def set_rpc_urls(rpc_urls: dict[str, Any]) -> None:
    CONFIG["rpc_urls"] = dict(rpc_urls)


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def get_contract_overrides(chain_id: int) -> dict[str, str]:
    contracts = CONFIG.get("contracts", {})
    overrides = contracts.get(str(chain_id))
    if overrides is None:
        overrides = contracts.get(chain_id)  # allow int keys
    return dict(overrides or {})


def get_chain_id() -> int:
    raw = os.environ.get(_CHAIN_ID_ENV_KEY, "").strip()
    if not raw:
        return int(CONFIG.get("chain_id", DEFAULT_CHAIN_ID))
    if raw.lower() in CHAIN_CODE_TO_ID:
        return CHAIN_CODE_TO_ID[raw.lower()]
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid CHAIN_ID: {raw!r}") from exc


def get_rpc_url(chain_id: int | None = None) -> str:
    """Resolve the single RPC endpoint for a chain.

    Environment first (``RPC_URL`` then ``UNICHAIN_SEPOLIA_RPC_URL``), then
    ``rpc_urls`` in config.json, then the public default endpoint.
    """
    chain_id = get_chain_id() if chain_id is None else int(chain_id)

    for key in _RPC_ENV_KEYS:
        value = os.environ.get(key, "").strip()
        if value:
            return value

    mapping = get_rpc_urls()
    rpc = mapping.get(str(chain_id))
    if rpc is None:
        rpc = mapping.get(chain_id)
    if isinstance(rpc, list):
        rpc = rpc[0] if rpc else None
    if rpc:
        return str(rpc).strip()

    default = DEFAULT_RPC_URLS.get(chain_id)
    if default is None:
        raise ValueError(f"No RPC configured for chain ID {chain_id}")
    return default


def load_private_key() -> str:
    raw = os.environ.get(_PRIVATE_KEY_ENV_KEY)
    if raw is None:
        raw = CONFIG.get("private_key") or ""
    key = str(raw).strip()
    if len(key) < _MIN_PRIVATE_KEY_LENGTH:
        raise ValueError("PRIVATE_KEY missing")
    if not key.startswith("0x"):
        key = f"0x{key}"
    return key
