"""
Data-access adapters.
"""

from schemamcp.adapters.base import (
    DataService,
    OperationRequest,
    ServiceRegistry,
    Transaction,
)

__all__ = [
    "DataService",
    "OperationRequest",
    "ServiceRegistry",
    "Transaction",
]
