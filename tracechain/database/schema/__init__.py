from .base import Base
from .ledger import BlockRow

__all__ = ["Base", "BlockRow"]
