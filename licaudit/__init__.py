"""licaudit — audit the declared licenses of an installed npm dependency tree."""

__version__ = "0.3.0"
