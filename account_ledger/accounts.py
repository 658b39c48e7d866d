"""
Account Module

Account data model and the account store. Accounts are identified by a
caller-assigned number; the storage id is assigned by the store on creation.
There are three account types: Default and Bonus (checking accounts allowed
into overdraft) and Saving (never below zero). Only Bonus accounts carry a
bonus score.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface
from .exceptions import AccountConflictError, AccountNotFoundError, InvalidArgumentError
from .logging_config import get_logger


logger = get_logger("ledger.accounts")


class AccountType(Enum):
    """Account types"""
    DEFAULT = "Default"
    BONUS = "Bonus"
    SAVING = "Saving"

    @property
    def is_checking(self) -> bool:
        """Checking accounts are bounded by the overdraft floor, not by zero"""
        return self in (AccountType.DEFAULT, AccountType.BONUS)


@dataclass
class Account:
    """Ledger account"""
    id: str
    number: int
    account_type: AccountType
    balance: Decimal
    created_at: datetime
    updated_at: datetime
    bonus_score: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))

        if self.account_type == AccountType.BONUS and self.bonus_score is None:
            raise ValueError("Bonus accounts must have a bonus score")
        if self.account_type != AccountType.BONUS and self.bonus_score is not None:
            raise ValueError(f"{self.account_type.value} accounts cannot have a bonus score")

    @property
    def is_bonus_account(self) -> bool:
        return self.account_type == AccountType.BONUS

    @property
    def is_saving_account(self) -> bool:
        return self.account_type == AccountType.SAVING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a storage document"""
        result = {
            'id': self.id,
            'number': self.number,
            'type': self.account_type.value,
            'balance': str(self.balance),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }
        if self.bonus_score is not None:
            result['bonus_score'] = self.bonus_score
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from a storage document"""
        return cls(
            id=data['id'],
            number=int(data['number']),
            account_type=AccountType(data['type']),
            balance=Decimal(data['balance']),
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            bonus_score=data.get('bonus_score'),
        )


class AccountStore:
    """
    Account persistence keyed by account number.

    Only the mutable fields in UPDATABLE_FIELDS can be changed after
    creation; number, id and type are fixed.
    """

    UPDATABLE_FIELDS = frozenset({"balance", "bonus_score"})

    def __init__(self, storage: StorageInterface, table: str = "accounts"):
        self.storage = storage
        self.table = table

    def find_by_number(self, number: int) -> Optional[Account]:
        """Get account by number, or None"""
        data = self.storage.load(self.table, str(number))
        if data:
            return Account.from_dict(data)
        return None

    def create(
        self,
        number: int,
        account_type: AccountType,
        balance: Decimal,
        bonus_score: Optional[int] = None
    ) -> Account:
        """
        Persist a new account.

        Args:
            number: Caller-assigned account number
            account_type: Account type
            balance: Opening balance
            bonus_score: Starting bonus score (Bonus accounts only)

        Returns:
            Created Account with id and timestamps assigned

        Raises:
            AccountConflictError: If the number is already taken
        """
        now = datetime.now(timezone.utc)
        account = Account(
            id=str(uuid.uuid4()),
            number=number,
            account_type=account_type,
            balance=balance,
            created_at=now,
            updated_at=now,
            bonus_score=bonus_score,
        )

        with self.storage.atomic():
            if self.storage.exists(self.table, str(number)):
                raise AccountConflictError(
                    f"There is already an account created with number {number}."
                )
            self.storage.save(self.table, str(number), account.to_dict())

        logger.debug(f"Stored account {number} ({account_type.value})")
        return account

    def update(self, number: int, fields: Dict[str, Any]) -> Account:
        """
        Merge a patch of mutable fields into the stored account.

        Raises:
            AccountNotFoundError: If the number is unknown
            InvalidArgumentError: If the patch names an immutable field
        """
        unknown = set(fields) - self.UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        data = self.storage.load(self.table, str(number))
        if not data:
            raise AccountNotFoundError("Account not found.")

        if 'balance' in fields:
            data['balance'] = str(fields['balance'])
        if 'bonus_score' in fields:
            data['bonus_score'] = fields['bonus_score']
        data['updated_at'] = datetime.now(timezone.utc).isoformat()

        account = Account.from_dict(data)
        self.storage.save(self.table, str(number), account.to_dict())
        return account

    def find_all_by_type(self, account_type: AccountType) -> List[Account]:
        """Get all accounts of a type in creation order"""
        return [
            Account.from_dict(data)
            for data in self.storage.find(self.table, {"type": account_type.value})
        ]

    def atomic(self):
        """Group several writes into one storage transaction"""
        return self.storage.atomic()
