"""Load and generate whitelist policy files (JSON)."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from licaudit.exceptions import OutputError, PolicyFileError
from licaudit.whitelist.models import PolicyRule

_POLICY_ADAPTER = TypeAdapter(list[PolicyRule])

# Starter set written by --create-new-whitelist
SAMPLE_LICENSES: tuple[str, ...] = (
    "MIT",
    "ISC",
    "0BSD",
    "BSD-2-Clause",
    "BSD-3-Clause",
    "Apache-2.0",
    "Unlicense",
    "CC0-1.0",
    "CC-BY-3.0",
    "CC-BY-4.0",
    "Python-2.0",
    "BlueOak-1.0.0",
    "(MIT OR Apache-2.0)",
    "(MIT OR CC0-1.0)",
)


def load_policy(path: str | Path) -> list[PolicyRule]:
    """Read a whitelist file: ``[{"license": ..., "modules": [...]}, ...]``."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PolicyFileError(f"cannot read whitelist {path}: {exc}") from exc

    try:
        return _POLICY_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        # pydantic reports malformed JSON as a "json_invalid" error too
        if any(err["type"] == "json_invalid" for err in exc.errors()):
            raise PolicyFileError(f"the whitelist {path} is not valid JSON") from exc
        messages = []
        for err in exc.errors():
            loc = " → ".join(str(part) for part in err["loc"])
            messages.append(f"{loc}: {err['msg']}")
        raise PolicyFileError(f"invalid whitelist {path}: {'; '.join(messages)}") from exc


def sample_policy() -> list[PolicyRule]:
    return [PolicyRule(license=name) for name in SAMPLE_LICENSES]


def write_sample_whitelist(path: str | Path) -> None:
    """Write the starter whitelist (blanket rules only) to *path*."""
    rows = [{"license": rule.license, "modules": sorted(rule.modules)} for rule in sample_policy()]
    try:
        Path(path).write_text(json.dumps(rows, indent=4) + "\n", encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"cannot write whitelist {path}: {exc}") from exc
