"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..accounts import Account


class CreateAccountRequest(BaseModel):
    number: Optional[int] = Field(None, description="Unique account number")
    type: Optional[str] = Field(None, description="Account type (Default, Bonus, Saving)")
    balance: Optional[Decimal] = Field(None, description="Opening balance")


class AmountRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, description="Amount to move")


class TransferRequest(BaseModel):
    to: Optional[int] = Field(None, description="Destination account number")
    amount: Optional[Decimal] = Field(None, description="Amount to move")


class InterestRequest(BaseModel):
    rate: Optional[Decimal] = Field(None, description="Interest rate in percent")


class AccountModel(BaseModel):
    id: str
    number: int
    type: str
    balance: str
    bonus_score: Optional[int] = None

    @classmethod
    def from_account(cls, account: Account) -> 'AccountModel':
        return cls(
            id=account.id,
            number=account.number,
            type=account.account_type.value,
            balance=str(account.balance),
            bonus_score=account.bonus_score
        )

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def account_response(account: Account) -> Dict[str, Any]:
    return AccountModel.from_account(account).to_response()
