"""
Error taxonomy for PerimeterAgent.

Structural and resolution errors abort a run. Policy-compilation errors are
scoped to a single AccessGroup or Identity, so a caller may keep compiling
independent artifacts after one of them fails.
"""

from typing import Optional


class PerimeterError(Exception):
    """Base class for all PerimeterAgent errors."""


class StructuralError(PerimeterError):
    """The resource graph could not be constructed."""


class ResolutionError(PerimeterError):
    """The topology could not be resolved."""


class PolicyCompilationError(PerimeterError):
    """A single access or identity artifact could not be compiled."""

    artifact: Optional[str] = None


class DanglingReferenceError(StructuralError):
    """An edge names an entity that has not been constructed."""

    def __init__(self, entity_type: str, name: str, referenced_by: Optional[str] = None):
        self.entity_type = entity_type
        self.name = name
        self.referenced_by = referenced_by
        message = f"{entity_type} '{name}' does not exist"
        if referenced_by:
            message += f" (referenced by {referenced_by})"
        super().__init__(message)


class DuplicateIdentifierError(StructuralError):
    """Two entities of the same type share a logical name."""

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} '{name}' is already defined")


class MissingAttributeError(StructuralError):
    """A required attribute was not supplied."""

    def __init__(self, entity_type: str, name: Optional[str], attribute: str):
        self.entity_type = entity_type
        self.name = name
        self.attribute = attribute
        label = f"{entity_type} '{name}'" if name else entity_type
        super().__init__(f"{label} is missing required attribute '{attribute}'")


class CardinalityError(StructuralError):
    """An entity already holds the only edge of its kind it may hold."""

    def __init__(self, entity_type: str, name: str, detail: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} '{name}': {detail}")


class FrozenGraphError(StructuralError):
    """The graph was mutated after it was sealed."""

    def __init__(self, graph_name: str):
        self.graph_name = graph_name
        super().__init__(f"Resource graph '{graph_name}' is frozen and cannot be modified")


class AddressSpaceExhaustedError(ResolutionError):
    """The requested subnets do not fit in the network's address block."""

    def __init__(self, network: str, cidr: str, requested: int, prefix: int, available: int):
        self.network = network
        self.cidr = cidr
        self.requested = requested
        self.prefix = prefix
        self.available = available
        super().__init__(
            f"Network '{network}' ({cidr}) cannot hold {requested} /{prefix} subnets "
            f"({available} available)"
        )


class UnrestrictedAdminAccessError(PolicyCompilationError):
    """An administrative port was opened to an unrestricted source."""

    def __init__(self, group: str, port: int, source: str):
        self.artifact = group
        self.group = group
        self.port = port
        self.source = source
        super().__init__(
            f"Access group '{group}' may not allow administrative port {port} "
            f"from unrestricted source {source}"
        )


class PlaintextIngressError(PolicyCompilationError):
    """A plaintext port is reachable alongside its encrypted counterpart."""

    def __init__(self, group: str, port: int, encrypted_port: int):
        self.artifact = group
        self.group = group
        self.port = port
        self.encrypted_port = encrypted_port
        super().__init__(
            f"Access group '{group}' may not allow plaintext port {port} while "
            f"encrypted port {encrypted_port} is reachable"
        )


class EmptyTrustPolicyError(PolicyCompilationError):
    """An identity's trust statement names no principal."""

    def __init__(self, identity: str):
        self.artifact = identity
        self.identity = identity
        super().__init__(f"Identity '{identity}' has a trust statement with no principal")


class OverbroadPermissionError(PolicyCompilationError):
    """A statement grants every action on every resource."""

    def __init__(self, identity: str, statement: str):
        self.artifact = identity
        self.identity = identity
        self.statement = statement
        super().__init__(
            f"Identity '{identity}' statement '{statement}' grants all actions on all "
            "resources; only provider-managed bootstrap roles may do this"
        )
