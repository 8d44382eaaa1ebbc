from contextlib import asynccontextmanager
from contextvars import ContextVar

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from uniperp.core.config import get_rpc_url

# chain id -> provider shared by every web3_from_chain_id block in a session
_SESSION: ContextVar[dict[int, AsyncWeb3] | None] = ContextVar(
    "uniperp_web3_session", default=None
)


def _get_web3(rpc: str) -> AsyncWeb3:
    provider = AsyncHTTPProvider(
        rpc, request_kwargs={"headers": AsyncHTTPProvider.get_request_headers()}
    )
    return AsyncWeb3(provider)


def get_transaction_chain_id(transaction: dict) -> int:
    if "chainId" not in transaction:
        raise ValueError("Transaction does not contain chainId")
    return int(transaction["chainId"])


def get_web3_from_chain_id(chain_id: int) -> AsyncWeb3:
    rpc = get_rpc_url(chain_id)
    logger.debug(f"Using RPC {rpc} for chain {chain_id}")
    return _get_web3(rpc)


@asynccontextmanager
async def web3_session():
    """Reuse one keep-alive provider per chain until the block exits.

    Outside a session every ``web3_from_chain_id`` block opens and closes its
    own provider.
    """
    if _SESSION.get() is not None:
        yield
        return
    web3s: dict[int, AsyncWeb3] = {}
    token = _SESSION.set(web3s)
    try:
        yield
    finally:
        _SESSION.reset(token)
        for web3 in web3s.values():
            await web3.provider.disconnect()


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    session = _SESSION.get()
    if session is not None:
        if chain_id not in session:
            session[chain_id] = get_web3_from_chain_id(chain_id)
        yield session[chain_id]
        return

    web3 = get_web3_from_chain_id(chain_id)
    try:
        yield web3
    finally:
        await web3.provider.disconnect()
