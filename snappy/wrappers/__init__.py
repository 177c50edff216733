# snappy/wrappers/__init__.py
from snappy.wrappers.generator import (
    TARGET_MARKER,
    binaryProfileName,
    binaryTarget,
    binaryWrapperName,
    generateBinaryWrapper,
    generateServiceFile,
    serviceFileName,
    serviceProfileName,
    wrapperTarget,
)

__all__ = [
    "TARGET_MARKER",
    "binaryProfileName",
    "binaryTarget",
    "binaryWrapperName",
    "generateBinaryWrapper",
    "generateServiceFile",
    "serviceFileName",
    "serviceProfileName",
    "wrapperTarget",
]
