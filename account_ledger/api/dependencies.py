"""
Service wiring and FastAPI dependencies
"""

from typing import Optional
from fastapi import Depends

from ..accounts import AccountStore
from ..config import LedgerConfig, get_config
from ..engine import TransactionEngine
from ..rules import LedgerRules
from ..storage import StorageInterface, create_storage


class LedgerSystem:
    """Storage, account store and transaction engine wired from configuration"""

    def __init__(self, config: Optional[LedgerConfig] = None, storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config)
        self.account_store = AccountStore(self.storage)
        self.engine = TransactionEngine(self.account_store, rules=LedgerRules.from_config(self.config))

    def close(self) -> None:
        self.storage.close()


_ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    """Dependency returning the process-wide ledger system, built on first use"""
    global _ledger_system
    if _ledger_system is None:
        _ledger_system = LedgerSystem()
    return _ledger_system


def get_engine(system: LedgerSystem = Depends(get_ledger_system)) -> TransactionEngine:
    return system.engine
