"""Typed view of the assistant's settings file.

Only the fields tune-in touches are modelled. Everything else is kept as
extra data and written back untouched, since other tools share this file.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MARKER_ALIAS = "_tuneIn"

PRE_TOOL_USE = "PreToolUse"
STOP = "Stop"
NOTIFICATION = "Notification"


class SettingsModel(BaseModel):
    """Base model: aliases on, unknown fields preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CommandHook(SettingsModel):
    """A shell command run by the assistant when the event fires."""

    type: Literal["command"] = "command"
    command: str


class HookGroup(SettingsModel):
    """One entry in an event's hook list.

    ``tune_in`` is the marker that tells injected groups apart from the
    user's own hooks.
    """

    tune_in: bool = Field(default=False, alias=MARKER_ALIAS)
    matcher: str | None = None
    hooks: list[dict[str, Any]] = Field(default_factory=list)


class AssistantSettings(SettingsModel):
    """Root of settings.json."""

    hooks: dict[str, list[HookGroup]] = Field(default_factory=dict)

    def add_group(self, event: str, group: HookGroup) -> None:
        hooks = dict(self.hooks)
        hooks[event] = [*hooks.get(event, []), group]
        # Assignment (not in-place mutation) marks the field as set for dump()
        self.hooks = hooks

    def injected_groups(self) -> list[tuple[str, HookGroup]]:
        """(event, group) pairs carrying the tune-in marker."""
        return [
            (event, group)
            for event, groups in self.hooks.items()
            for group in groups
            if group.tune_in
        ]

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


def injected_group(command: str) -> HookGroup:
    """A wrapper-owned group holding a single command hook."""
    hook = CommandHook(command=command).model_dump()
    return HookGroup.model_validate({MARKER_ALIAS: True, "hooks": [hook]})
