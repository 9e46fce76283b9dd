"""Error types raised while assembling a one-jar archive.

Every failure surfaces as a :class:`BuildError` subclass. Name collisions are
not errors; they are resolved in-band by :class:`~jar_flattener.writer.EntryWriter`.
"""


class BuildError(RuntimeError):
    """Raised when assembling the archive fails."""


class ConfigurationError(BuildError):
    """Raised when a required input is missing or invalid."""


class ManifestError(ConfigurationError):
    """Raised when a manifest cannot be parsed."""


class IOFailure(BuildError):
    """Raised when reading a source file or writing the output fails."""


class AttachmentFailure(BuildError):
    """Raised when the produced archive cannot be registered with the build."""
