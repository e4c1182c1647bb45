"""Exceptions raised while loading trajectories and building assemblies."""


class PetworldError(Exception):
    """Base class for all errors raised by petworld."""

    def __init__(self, message="PetWorld processing failed."):
        super().__init__(message)


class MalformedTable(PetworldError):
    """A metadata table is missing columns or holds unparsable values."""

    def __init__(self, message="Malformed metadata table."):
        super().__init__(message)


class MalformedOperatorRecord(MalformedTable):
    """An operator record has an empty, duplicated or non-numeric entry."""

    def __init__(self, message="Malformed operator record."):
        super().__init__(message)


class InvalidExpression(PetworldError):
    """An operator expression could not be parsed or resolved."""

    def __init__(self, message="Invalid operator expression.", expression=None):
        super().__init__(message)
        self.expression = expression


class AssemblyNotFound(PetworldError):
    """The requested assembly id is not defined for the trajectory."""

    def __init__(self, message="Assembly not defined.", assembly_id=None):
        super().__init__(message)
        self.assembly_id = assembly_id


class FrameResolutionError(PetworldError):
    """A trajectory frame could not be resolved into a model."""

    def __init__(self, message="Unable to resolve trajectory frame.", index=None):
        super().__init__(message)
        self.index = index


class UnsupportedFormat(FrameResolutionError):
    """Source data does not match the expected mmCIF schema."""

    def __init__(self, message="Source format not supported.", index=None):
        super().__init__(message, index=index)


__all__ = [
    "PetworldError",
    "MalformedTable",
    "MalformedOperatorRecord",
    "InvalidExpression",
    "AssemblyNotFound",
    "FrameResolutionError",
    "UnsupportedFormat",
]
