# snappy/hooks/__init__.py
from snappy.hooks.registry import (
    HOOK_FILE_SUFFIX,
    ID_PLACEHOLDER,
    Hook,
    HookRegistry,
    parseHookText,
    readHookFile,
)
from snappy.hooks.instances import hookInstanceId, installHooks, removeHooks

__all__ = [
    "HOOK_FILE_SUFFIX",
    "ID_PLACEHOLDER",
    "Hook",
    "HookRegistry",
    "parseHookText",
    "readHookFile",
    "hookInstanceId",
    "installHooks",
    "removeHooks",
]
