"""
Access policy: restriction resolution, wrap access and field omission.
"""

from schemamcp.policy.access import WrapAccess, compute_wrap_access, has_operation_access
from schemamcp.policy.redaction import OmissionFilter
from schemamcp.policy.restrictions import Restriction, map_grant, resolve_restrictions

__all__ = [
    "OmissionFilter",
    "Restriction",
    "WrapAccess",
    "compute_wrap_access",
    "has_operation_access",
    "map_grant",
    "resolve_restrictions",
]
