"""
Identity module for least-privilege role assembly.
"""

from .assembler import RoleAssembler

__all__ = ["RoleAssembler"]
