class BlockGraphError(Exception):
    """Base class for block graph integrity errors."""


class NotFoundError(BlockGraphError):
    """Referenced diagram or block does not exist (or is not owned by the parent)."""


class ValidationError(BlockGraphError):
    """Self reference or a block that would close a cycle."""


class ConflictError(BlockGraphError):
    """The entity key already has a block in the parent diagram."""
