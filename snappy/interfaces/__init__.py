# snappy/interfaces/__init__.py
from snappy.interfaces.registry import (
    Interface,
    InterfaceRegistry,
    Substitution,
    checkAllowed,
    defaultRegistry,
)
from snappy.interfaces.composer import (
    DEFAULT_TEMPLATES,
    AppContext,
    ConfinementProfile,
    Connection,
    PolicyComposer,
    SecurityTemplate,
    profileName,
    resolveConnections,
    templateVariables,
)

__all__ = [
    "Interface",
    "InterfaceRegistry",
    "Substitution",
    "checkAllowed",
    "defaultRegistry",
    "DEFAULT_TEMPLATES",
    "AppContext",
    "ConfinementProfile",
    "Connection",
    "PolicyComposer",
    "SecurityTemplate",
    "profileName",
    "resolveConnections",
    "templateVariables",
]
