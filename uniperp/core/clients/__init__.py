from uniperp.core.clients.PythClient import PYTH_CLIENT, PythClient

__all__ = [
    "PYTH_CLIENT",
    "PythClient",
]
