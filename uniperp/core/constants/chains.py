CHAIN_ID_UNICHAIN_SEPOLIA = 1301
CHAIN_ID_UNICHAIN = 130

CHAIN_CODE_TO_ID = {
    "unichain-sepolia": CHAIN_ID_UNICHAIN_SEPOLIA,
    "unichain": CHAIN_ID_UNICHAIN,
}

DEFAULT_CHAIN_ID = CHAIN_ID_UNICHAIN_SEPOLIA

DEFAULT_RPC_URLS: dict[int, str] = {
    CHAIN_ID_UNICHAIN_SEPOLIA: "https://sepolia.unichain.org",
    CHAIN_ID_UNICHAIN: "https://mainnet.unichain.org",
}

PRE_EIP_1559_CHAIN_IDS: set[int] = set()

CHAIN_EXPLORER_URLS: dict[int, str] = {
    CHAIN_ID_UNICHAIN_SEPOLIA: "https://sepolia.uniscan.xyz/",
    CHAIN_ID_UNICHAIN: "https://uniscan.xyz/",
}


def get_explorer_tx_url(chain_id: int, txn_hash: str) -> str | None:
    base = CHAIN_EXPLORER_URLS.get(int(chain_id))
    if not base:
        return None
    return f"{base}tx/{txn_hash}"
