"""Block identity: classification, signatures, id assignment, confirmations."""

from .classifier import BLOCK_TYPES, is_block, iter_blocks
from .confirmation import ConfirmationLedger
from .signature import compute_signature
from .tracker import AssignmentResult, BlockIdentityTracker, assign_flat, assign_ids

__all__ = [
    "BLOCK_TYPES",
    "AssignmentResult",
    "BlockIdentityTracker",
    "ConfirmationLedger",
    "assign_flat",
    "assign_ids",
    "compute_signature",
    "is_block",
    "iter_blocks",
]
