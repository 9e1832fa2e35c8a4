"""
Topology module for subnet allocation and route domains.
"""

from .resolver import ResolvedTopology, SubnetRequest, TopologyResolver

__all__ = ["TopologyResolver", "ResolvedTopology", "SubnetRequest"]
