"""Hook injection into the assistant's event-hook settings."""

from tunein.hooks.manager import HookInjector, HookSnapshot, parse_settings
from tunein.hooks.schema import (
    MARKER_ALIAS,
    NOTIFICATION,
    PRE_TOOL_USE,
    STOP,
    AssistantSettings,
    CommandHook,
    HookGroup,
)
from tunein.hooks.session_file import SessionFile, guard_command

__all__ = [
    "AssistantSettings",
    "CommandHook",
    "HookGroup",
    "HookInjector",
    "HookSnapshot",
    "MARKER_ALIAS",
    "NOTIFICATION",
    "PRE_TOOL_USE",
    "STOP",
    "SessionFile",
    "guard_command",
    "parse_settings",
]
