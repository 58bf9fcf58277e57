"""Whitelist policy schema."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Classification(Enum):
    """Outcome of matching one package against the policy."""

    NONE = "none"  # no rule allows it: violation
    VALID = "valid"  # blanket allowance
    EXCEPTION = "exception"  # allowed for this package name only


class PolicyRule(BaseModel):
    """``{"license": "MIT", "modules": []}``.

    An empty ``modules`` list allows the license for every package; a
    non-empty one allows it only for the listed package names. ``license``
    is compared verbatim (case-sensitive) with the resolved license.
    """

    model_config = ConfigDict(frozen=True)

    license: str
    modules: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_blanket(self) -> bool:
        return not self.modules
