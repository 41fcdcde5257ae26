"""
Typed errors raised by the drawing model and the drawing tools.
"""
from __future__ import annotations


class CadUtilitiesError(Exception):
    """Base error of the project."""


class InvalidInputError(CadUtilitiesError, ValueError):
    """Degenerate geometric input (zero axis, zero scale, bad index)."""


class InvalidExtentsError(CadUtilitiesError):
    """The entity has no geometry to bound."""


class NonUniformScalingError(CadUtilitiesError):
    """A planar curve cannot follow a transform that is not a similarity."""


class ObjectNotFoundError(CadUtilitiesError, KeyError):
    """The ObjectId is unknown to the database or the object was erased."""


class NotOpenForWriteError(CadUtilitiesError):
    """A database-resident object was modified while opened for read."""


class TransactionClosedError(CadUtilitiesError):
    """The transaction is no longer usable, or is not the top transaction."""
