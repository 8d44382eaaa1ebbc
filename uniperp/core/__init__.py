from uniperp.core.adapters.BaseAdapter import BaseAdapter

__all__ = [
    "BaseAdapter",
]
