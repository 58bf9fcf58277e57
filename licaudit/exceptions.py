"""Custom exceptions for licaudit.

The resolvers never raise for malformed manifest data; they return
``valid=False`` results instead. These exceptions cover the outer layers
(scan roots, policy files, output files) where the CLI decides the exit code.
"""


class AuditError(Exception):
    """Base exception for all audit errors."""


class StartDirError(AuditError):
    """Raised when a scan root is missing or is not an installed npm project."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"base path '{path}' not existing or not a NodeJS project")


class ManifestError(AuditError):
    """Raised when the target project's package.json cannot be read or parsed."""


class PolicyFileError(AuditError):
    """Raised when a whitelist file is missing, not JSON, or has the wrong shape."""


class ProdFilterError(AuditError):
    """Raised when production dependencies are not all installed."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"{len(missing)} production dependencies are not installed "
            f"({', '.join(missing)}); running `npm install` usually fixes this"
        )


class OutputError(AuditError):
    """Raised when a result file cannot be written."""
