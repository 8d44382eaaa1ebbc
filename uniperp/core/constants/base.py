GAS_BUFFER_MULTIPLIER = 1.1
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
SUGGESTED_GAS_PRICE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2

# Timeout constants (seconds)
DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout
DEFAULT_TRANSACTION_TIMEOUT = 180  # Transaction receipt timeout (seconds)
DEFAULT_CONFIRMATIONS = 1

ADAPTER_MARGIN = "MARGIN"
ADAPTER_POSITION = "POSITION"
ADAPTER_MARKET = "MARKET"
ADAPTER_LIQUIDATION = "LIQUIDATION"
ADAPTER_POOL = "POOL"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Token / price scales
USDC_DECIMALS = 6
VETH_DECIMALS = 18
PRICE_DECIMALS = 18
BPS_DENOMINATOR = 10_000

# Default market pool parameters
DEFAULT_POOL_FEE = 3000
DEFAULT_TICK_SPACING = 60
Q96 = 2**96
DEFAULT_SQRT_PRICE_X96 = Q96  # 1:1

# Liquidation engine defaults (basis points)
DEFAULT_MAINTENANCE_MARGIN_BPS = 500
DEFAULT_LIQUIDATION_FEE_BPS = 250
DEFAULT_INSURANCE_FEE_BPS = 250

DEFAULT_SCAN_MAX_TOKEN_ID = 100
