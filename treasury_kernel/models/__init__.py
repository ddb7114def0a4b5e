"""
treasury_kernel.models -- SQLAlchemy ORM models.

Importing this package registers every mapper on ``Base.metadata``.
"""

from treasury_kernel.models.operation import (
    TreasuryOperationModel,
    TreasurySyncCursorModel,
)
from treasury_kernel.models.treasury import (
    TreasuryAccountMessageModel,
    TreasuryAccountModel,
    TreasuryModel,
)

__all__ = [
    "TreasuryAccountMessageModel",
    "TreasuryAccountModel",
    "TreasuryModel",
    "TreasuryOperationModel",
    "TreasurySyncCursorModel",
]
