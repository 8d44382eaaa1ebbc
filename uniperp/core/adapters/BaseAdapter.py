from __future__ import annotations

import functools
from abc import ABC
from collections.abc import Callable
from typing import Any

from loguru import logger

from uniperp.core.config import get_chain_id
from uniperp.core.constants.contracts import Deployment, get_deployment
from uniperp.core.utils.transaction import SignCallback


def require_wallet(fn: Callable) -> Callable:
    """Return ``(False, ...)`` early unless the adapter can sign as a wallet."""

    @functools.wraps(fn)
    async def wrapper(self: BaseAdapter, *args: Any, **kwargs: Any) -> Any:
        if not getattr(self, "wallet_address", None):
            return False, "wallet address not configured (set PRIVATE_KEY)"
        if getattr(self, "sign_callback", None) is None:
            return False, "signing callback not configured"
        return await fn(self, *args, **kwargs)

    return wrapper


class BaseAdapter(ABC):
    """Common wiring for contract adapters.

    Resolves the chain id (``CHAIN_ID`` / config.json when not given) and
    the deployment's contract addresses once, at construction.
    """

    adapter_type: str | None = None

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        *,
        sign_callback: SignCallback | None = None,
        wallet_address: str | None = None,
        chain_id: int | None = None,
    ):
        self.name = name
        self.config = config or {}
        self.logger = logger.bind(adapter=self.__class__.__name__)
        self.sign_callback = sign_callback
        self.wallet_address = wallet_address
        self.chain_id = chain_id if chain_id is not None else get_chain_id()
        self.deployment: Deployment = get_deployment(self.chain_id)

    def child(self, cls: type[BaseAdapter]) -> Any:
        """Another adapter sharing this adapter's signer and chain."""
        return cls(
            self.config,
            sign_callback=self.sign_callback,
            wallet_address=self.wallet_address,
            chain_id=self.chain_id,
        )
