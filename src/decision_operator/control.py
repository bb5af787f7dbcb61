"""Reconcile outcomes handed back to the invoking control loop.

A reconciler never persists its own resource's status. It returns an
``UpdateControl`` telling the loop whether to write the status
sub-resource, write nothing, or record a terminal admission rejection.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class ControlKind(enum.StrEnum):
    NO_UPDATE = "no_update"
    UPDATE_STATUS = "update_status"
    REJECTED = "rejected"


@dataclass(frozen=True)
class UpdateControl:
    kind: ControlKind
    resource: Any = None

    @classmethod
    def no_update(cls) -> UpdateControl:
        return cls(ControlKind.NO_UPDATE)

    @classmethod
    def update_status(cls, resource: Any) -> UpdateControl:
        return cls(ControlKind.UPDATE_STATUS, resource)

    @classmethod
    def rejected(cls, resource: Any) -> UpdateControl:
        return cls(ControlKind.REJECTED, resource)

    @property
    def is_no_update(self) -> bool:
        return self.kind == ControlKind.NO_UPDATE

    @property
    def needs_status_write(self) -> bool:
        """True for both status updates and rejections."""
        return self.kind != ControlKind.NO_UPDATE
