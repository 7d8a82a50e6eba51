"""Exception hierarchy for chroni."""


class ChroniError(Exception):
    """Base class for all chroni errors."""


class ConfigError(ChroniError):
    """Invalid arguments, bad glob pattern or missing source root."""


class TraversalFatal(ChroniError):
    """A directory could not be enumerated or a root is unusable.

    Aborts the whole run before any further operation is attempted.
    """

    def __init__(self, path, cause):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"{self.path}: {cause}")


class EntryIOFailure(ChroniError):
    """A single copy, delete, hash or metadata read failed."""

    def __init__(self, relative_path: str, operation: str, cause):
        self.relative_path = relative_path
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} {relative_path}: {cause}")
