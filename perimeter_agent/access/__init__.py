"""
Access module for compiling access intents into access group rules.
"""

from .compiler import AccessControlCompiler, CompilationResult, CompiledAccessGroup

__all__ = ["AccessControlCompiler", "CompiledAccessGroup", "CompilationResult"]
