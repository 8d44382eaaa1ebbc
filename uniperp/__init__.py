__version__ = "0.1.0"

from uniperp.core import BaseAdapter

__all__ = [
    "__version__",
    "BaseAdapter",
]
