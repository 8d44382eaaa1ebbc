# Minimal ABIs for the perps contracts (only the functions the CLI touches).

MARGIN_ACCOUNT_ABI = [
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "withdraw",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "freeBalance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "lockedBalance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "getTotalBalance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "addAuthorizedContract",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "contractAddress", "type": "address"}],
        "outputs": [],
    },
    {
        "name": "authorizedContracts",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "contractAddress", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

POSITION_STRUCT_COMPONENTS = [
    {"name": "owner", "type": "address"},
    {"name": "margin", "type": "uint96"},
    {"name": "marketId", "type": "bytes32"},
    {"name": "sizeBase", "type": "int256"},
    {"name": "entryPrice", "type": "uint256"},
    {"name": "lastFundingIndex", "type": "uint256"},
    {"name": "openedAt", "type": "uint64"},
    {"name": "fundingPaid", "type": "int256"},
]

POSITION_MANAGER_ABI = [
    {
        "name": "getPosition",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": POSITION_STRUCT_COMPONENTS,
            }
        ],
    },
    {
        "name": "getUserPositions",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    {
        "name": "openPosition",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "marketId", "type": "bytes32"},
            {"name": "sizeBase", "type": "int256"},
            {"name": "entryPrice", "type": "uint256"},
            {"name": "margin", "type": "uint256"},
        ],
        "outputs": [{"name": "tokenId", "type": "uint256"}],
    },
    {
        "name": "closePosition",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenId", "type": "uint256"},
            {"name": "exitPrice", "type": "uint256"},
        ],
        "outputs": [{"name": "pnl", "type": "int256"}],
    },
    {
        "name": "updatePosition",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenId", "type": "uint256"},
            {"name": "newSizeBase", "type": "int256"},
            {"name": "newMargin", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "name": "addMargin",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenId", "type": "uint256"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "name": "removeMargin",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenId", "type": "uint256"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "name": "addMarket",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "marketId", "type": "bytes32"},
            {"name": "baseAsset", "type": "address"},
            {"name": "quoteAsset", "type": "address"},
            {"name": "poolAddress", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "name": "minMargin",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

MARKET_STRUCT_COMPONENTS = [
    {"name": "baseAsset", "type": "address"},
    {"name": "quoteAsset", "type": "address"},
    {"name": "poolAddress", "type": "address"},
    {"name": "isActive", "type": "bool"},
    {"name": "fundingIndex", "type": "int256"},
    {"name": "lastFundingUpdate", "type": "uint256"},
]

# MarketManager and PositionFactory expose the same market registry surface.
MARKET_REGISTRY_ABI = [
    {
        "name": "getMarket",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "marketId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": MARKET_STRUCT_COMPONENTS,
            }
        ],
    },
    {
        "name": "addMarket",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "marketId", "type": "bytes32"},
            {"name": "baseAsset", "type": "address"},
            {"name": "quoteAsset", "type": "address"},
            {"name": "poolAddress", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "name": "keyManagers",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "addKeyManager",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [],
    },
    {
        "name": "owner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

FUNDING_ORACLE_ABI = [
    {
        "name": "getMarkPrice",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "addMarket",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "poolId", "type": "bytes32"},
            {"name": "vammHook", "type": "address"},
            {"name": "pythPriceFeedId", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "name": "vammHooks",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "owner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

MARKET_STATE_STRUCT_COMPONENTS = [
    {"name": "virtualBase", "type": "uint256"},
    {"name": "virtualQuote", "type": "uint256"},
    {"name": "k", "type": "uint256"},
    {"name": "globalFundingIndex", "type": "int256"},
    {"name": "totalLongOI", "type": "uint256"},
    {"name": "totalShortOI", "type": "uint256"},
    {"name": "maxOICap", "type": "uint256"},
    {"name": "lastFundingTime", "type": "uint256"},
    {"name": "spotPriceFeed", "type": "address"},
    {"name": "isActive", "type": "bool"},
]

PERPS_HOOK_ABI = [
    {
        "name": "getMarkPrice",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "getMarketState",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": MARKET_STATE_STRUCT_COMPONENTS,
            }
        ],
    },
    {
        "name": "emergencyRebalanceVAMM",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "poolId", "type": "bytes32"},
            {"name": "newVirtualBase", "type": "uint256"},
            {"name": "newVirtualQuote", "type": "uint256"},
        ],
        "outputs": [],
    },
]

LIQUIDATION_ENGINE_ABI = [
    {
        "name": "getLiquidationConfig",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "poolId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "maintenanceMarginRatio", "type": "uint256"},
                    {"name": "liquidationFeeRate", "type": "uint256"},
                    {"name": "insuranceFeeRate", "type": "uint256"},
                    {"name": "isActive", "type": "bool"},
                ],
            }
        ],
    },
    {
        "name": "configureLiquidation",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "poolId", "type": "bytes32"},
            {"name": "maintenanceMarginRatio", "type": "uint256"},
            {"name": "liquidationFeeRate", "type": "uint256"},
            {"name": "insuranceFeeRate", "type": "uint256"},
            {"name": "isActive", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "name": "isPositionLiquidatable",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {"name": "liquidatable", "type": "bool"},
            {"name": "price", "type": "uint256"},
            {"name": "healthFactor", "type": "uint256"},
        ],
    },
    {
        "name": "liquidatePosition",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [],
    },
]

# Custom error signatures surfaced by the perps contracts, the v4 PoolManager
# and OpenZeppelin tokens. Selectors are derived in uniperp.core.errors.
PERPS_ERROR_SIGNATURES = [
    "InsufficientMargin()",
    "Unauthorized()",
    "PoolNotInitialized()",
    "WrappedError(address,bytes4,bytes,bytes)",
    "NotPositionOwner()",
    "MarketNotActive()",
    "MarketAlreadyExists()",
    "PositionNotLiquidatable()",
    "ERC20InsufficientAllowance(address,uint256,uint256)",
    "ERC20InsufficientBalance(address,uint256,uint256)",
    "OwnableUnauthorizedAccount(address)",
]
