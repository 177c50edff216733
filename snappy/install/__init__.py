# snappy/install/__init__.py
from snappy.install.activation import activate, currentTarget, deactivate, isActive
from snappy.install.devmode import inDeveloperMode
from snappy.install.engine import Decisions, InstallEngine
from snappy.install.lifecycle import InstallListener, InstallPhase
from snappy.install.repository import InstalledRevision, SnapRepository
from snappy.install.verify import DebsigVerifier, SignatureVerifier

__all__ = [
    "activate",
    "currentTarget",
    "deactivate",
    "isActive",
    "inDeveloperMode",
    "Decisions",
    "InstallEngine",
    "InstallListener",
    "InstallPhase",
    "InstalledRevision",
    "SnapRepository",
    "DebsigVerifier",
    "SignatureVerifier",
]
