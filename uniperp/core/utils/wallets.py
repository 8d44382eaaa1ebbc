from __future__ import annotations

from eth_account import Account
from eth_account.signers.local import LocalAccount

from uniperp.core.config import load_private_key
from uniperp.core.utils.transaction import SignCallback


def load_account(private_key: str | None = None) -> LocalAccount:
    return Account.from_key(private_key or load_private_key())


def make_sign_callback(account: LocalAccount) -> SignCallback:
    async def sign_callback(tx: dict) -> bytes:
        signed = account.sign_transaction(tx)
        return signed.raw_transaction

    return sign_callback
