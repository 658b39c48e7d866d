"""
Account Type Rules Module

Balance floors, opening balance requirements, bonus points and interest
formula for each account type. Every branch over AccountType is exhaustive;
an unhandled type raises AssertionError.

Balance arithmetic never rounds: a debit, credit or transfer whose result
needs more than MONEY_PRECISION digits is rejected with InvalidArgumentError
instead of losing money.
"""

from decimal import (
    Context, Decimal, DecimalException, DivisionByZero, Inexact, InvalidOperation,
    Overflow, Rounded, localcontext
)
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Optional
from enum import Enum
import re

from .accounts import Account, AccountType
from .config import LedgerConfig, get_config
from .exceptions import (
    InvalidArgumentError, InsufficientBalanceError, OverdraftExceededError
)


class BonusOperation(Enum):
    """Operations that earn bonus points"""
    CREDIT = "credit"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class LedgerRules:
    """Business constants applied by the transaction engine"""
    maximum_negative_balance_allowed: Decimal = Decimal("-1000")
    credit_bonus_divisor: int = 100
    transfer_bonus_divisor: int = 150
    initial_bonus_score: int = 10

    def __post_init__(self):
        if self.maximum_negative_balance_allowed > 0:
            raise ValueError("Overdraft floor cannot be positive")
        if self.credit_bonus_divisor <= 0 or self.transfer_bonus_divisor <= 0:
            raise ValueError("Bonus divisors must be positive")

    @classmethod
    def from_config(cls, config: Optional[LedgerConfig] = None) -> 'LedgerRules':
        config = config or get_config()
        return cls(
            maximum_negative_balance_allowed=Decimal(config.maximum_negative_balance_allowed),
            credit_bonus_divisor=config.credit_bonus_divisor,
            transfer_bonus_divisor=config.transfer_bonus_divisor,
            initial_bonus_score=config.initial_bonus_score,
        )


MONEY_PRECISION = 28

# Balance arithmetic must be exact; interest accrual may round
EXACT_CONTEXT = Context(
    prec=MONEY_PRECISION,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact, Rounded]
)
ROUNDING_CONTEXT = Context(
    prec=MONEY_PRECISION,
    traps=[InvalidOperation, DivisionByZero, Overflow]
)
_ACCOUNT_NUMBER = re.compile(r"[0-9]+")


@contextmanager
def money_arithmetic(exact: bool = True):
    """
    Run Decimal arithmetic in the money context.

    Any decimal signal raised inside the block (a result that would need
    rounding, an overflow, an integer division too large for the precision)
    becomes InvalidArgumentError.
    """
    try:
        with localcontext(EXACT_CONTEXT if exact else ROUNDING_CONTEXT):
            yield
    except DecimalException as e:
        raise InvalidArgumentError("Amount is too large to be represented exactly.") from e


def _unknown_type(account_type) -> AssertionError:
    return AssertionError(f"Unhandled account type: {account_type!r}")


def to_decimal(value: Any, name: str) -> Decimal:
    """Convert a primitive numeric input to Decimal or raise InvalidArgumentError"""
    if value is None or isinstance(value, bool):
        raise InvalidArgumentError(f"{name} is required.")
    if isinstance(value, str) and not value.strip():
        raise InvalidArgumentError(f"{name} is required.")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidArgumentError(f"{name} must be a number.")
    if not result.is_finite():
        raise InvalidArgumentError(f"{name} must be a finite number.")
    if len(result.as_tuple().digits) > MONEY_PRECISION:
        raise InvalidArgumentError(f"{name} has more than {MONEY_PRECISION} significant digits.")
    return result


def to_positive_amount(value: Any, name: str = "Amount") -> Decimal:
    amount = to_decimal(value, name)
    if amount <= 0:
        raise InvalidArgumentError(f"{name} must be a positive number.")
    return amount


def to_account_number(value: Any, name: str = "Account number") -> int:
    """Account numbers are positive integers; numeric strings are accepted"""
    if value is None or isinstance(value, bool):
        raise InvalidArgumentError(f"{name} is required.")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _ACCOUNT_NUMBER.fullmatch(value.strip()):
        number = int(value.strip())
    else:
        raise InvalidArgumentError(f"{name} must be an integer.")
    if number <= 0:
        raise InvalidArgumentError(f"{name} must be positive.")
    return number


def to_account_type(value: Any) -> AccountType:
    if isinstance(value, AccountType):
        return value
    if not value:
        raise InvalidArgumentError("Account type is required.")
    try:
        return AccountType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AccountType)
        raise InvalidArgumentError(f"Invalid account type {value!r}. Expected one of: {allowed}.")


def opening_balance(account_type: AccountType, balance: Optional[Decimal], rules: LedgerRules) -> Decimal:
    """
    Validate the opening balance for a new account.

    Default accounts need a non-zero balance, Saving accounts a strictly
    positive one. Bonus accounts may open empty.
    """
    if account_type == AccountType.DEFAULT:
        if not balance:
            raise InvalidArgumentError("Initial balance is required for this account type.")
    elif account_type == AccountType.SAVING:
        if not balance or balance <= 0:
            raise InvalidArgumentError("Balance is required to saving accounts and must be positive.")
    elif account_type == AccountType.BONUS:
        balance = balance or Decimal("0")
    else:
        raise _unknown_type(account_type)

    if balance < rules.maximum_negative_balance_allowed:
        raise InvalidArgumentError(
            f"Initial balance cannot be below the maximum allowed negative balance "
            f"({rules.maximum_negative_balance_allowed})."
        )
    return balance


def initial_bonus_score(account_type: AccountType, rules: LedgerRules) -> Optional[int]:
    if account_type == AccountType.BONUS:
        return rules.initial_bonus_score
    if account_type in (AccountType.DEFAULT, AccountType.SAVING):
        return None
    raise _unknown_type(account_type)


def check_debit_allowed(account: Account, amount: Decimal, rules: LedgerRules, operation: str = "Debit") -> Decimal:
    """
    Return the balance left after taking amount out of the account.

    Raises:
        InsufficientBalanceError: Saving account would go below zero
        OverdraftExceededError: Checking account would go below the floor
        InvalidArgumentError: The new balance cannot be represented exactly
    """
    with money_arithmetic():
        new_balance = account.balance - amount

    if account.is_saving_account:
        if new_balance < 0:
            raise InsufficientBalanceError("Insufficient balance.")
    elif account.account_type.is_checking:
        limit = rules.maximum_negative_balance_allowed
        if new_balance < limit:
            raise OverdraftExceededError(
                f"{operation} amount exceeds maximum allowed negative balance ({limit}).",
                limit=limit
            )
    else:
        raise _unknown_type(account.account_type)

    return new_balance


def bonus_points(operation: BonusOperation, amount: Decimal, rules: LedgerRules) -> int:
    """Points earned for an incoming amount, truncated to a whole number"""
    if operation == BonusOperation.CREDIT:
        divisor = rules.credit_bonus_divisor
    elif operation == BonusOperation.TRANSFER:
        divisor = rules.transfer_bonus_divisor
    else:
        raise AssertionError(f"Unhandled bonus operation: {operation!r}")
    with money_arithmetic():
        return int(amount // divisor)


def incoming_patch(account: Account, amount: Decimal, operation: BonusOperation, rules: LedgerRules) -> dict:
    """Fields to write when amount arrives in the account"""
    with money_arithmetic():
        patch = {"balance": account.balance + amount}

    if account.is_bonus_account:
        patch["bonus_score"] = account.bonus_score + bonus_points(operation, amount, rules)
    elif not (account.account_type.is_checking or account.is_saving_account):
        raise _unknown_type(account.account_type)

    return patch


def apply_interest(balance: Decimal, rate_percent: Decimal) -> Decimal:
    """balance * (1 + rate / 100), rounded to the money precision"""
    with money_arithmetic(exact=False):
        interest = balance * (rate_percent / Decimal(100))
        return balance + interest
