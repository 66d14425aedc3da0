"""Error hierarchy for blocksync.

Every public error class inherits from :class:`BlockSyncError` and carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause``.

The engine itself degrades instead of raising on runtime problems (a block
that cannot be snapshotted is simply not reported for that cycle).  Errors
surface to the host only for contract violations such as duplicate ids in a
flat-list assignment.  :class:`BlockSyncTreeError` and
:class:`BlockSyncSerializationError` are raised internally and caught at the
snapshot boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error blocksync can raise."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    TREE_ERROR = "TREE_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    UNSUPPORTED_BLOCK = "UNSUPPORTED_BLOCK"
    IDENTITY_COLLISION = "IDENTITY_COLLISION"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class BlockSyncError(Exception):
    """Base exception for all blocksync errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string).
    message:
        A developer-friendly description of what went wrong.
    context:
        Structured diagnostic detail.  Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Host contract errors
# ---------------------------------------------------------------------------

class BlockSyncValidationError(BlockSyncError):
    """A host call violated the engine's contract.

    Context keys: ``operation``, ``field``, ``value``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlockSyncIdentityCollisionError(BlockSyncError):
    """Two distinct blocks were given the same id.

    Provisional ids are random enough that this is not checked at runtime;
    the class exists so that hosts which do check have a stable code to use.

    Context keys: ``block_id``, ``positions``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.IDENTITY_COLLISION,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Snapshot-time errors (caught per block)
# ---------------------------------------------------------------------------

class BlockSyncTreeError(BlockSyncError):
    """A top-level node reported a position or size outside the document.

    Context keys: ``position``, ``node_size``, ``content_size``, ``block_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TREE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlockSyncSerializationError(BlockSyncError):
    """Rendering a block's Markdown fragment failed.

    Context keys: ``block_type``, ``inline_kind``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str = ErrorCode.SERIALIZATION_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class BlockSyncUnsupportedBlockError(BlockSyncSerializationError):
    """A tracked block type has no serializer and the policy is ``"raise"``.

    Context keys: ``block_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.UNSUPPORTED_BLOCK,
        )
