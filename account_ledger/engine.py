"""
Transaction Engine Module

Applies account creation, debits, credits, transfers and interest accrual to
accounts held in an AccountStore. Every rule check happens before the first
write of an operation, so a rejected operation never changes stored state.
Read-modify-write sequences run under per-account locks.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, List, Optional

from .accounts import Account, AccountStore, AccountType
from .exceptions import (
    AccountConflictError, AccountNotFoundError, InsufficientBalanceError,
    InvalidArgumentError, LedgerError
)
from .locking import AccountLockManager
from .logging_config import get_logger, log_action
from .rules import (
    LedgerRules, BonusOperation, to_account_number, to_account_type, to_decimal,
    to_positive_amount, opening_balance, initial_bonus_score, check_debit_allowed,
    incoming_patch, apply_interest
)


logger = get_logger("ledger.engine")


@dataclass
class TransferResult:
    """Both sides of a completed transfer"""
    from_account: Account
    to_account: Account


class TransactionEngine:
    """
    Ledger operations over an injected account store.

    Transfers are applied inside a storage transaction; if the destination
    update fails after the source was debited, the source debit is reversed
    before the error is raised. Interest for all savings accounts is applied
    account by account: a failure part way through leaves earlier accounts
    updated.
    """

    def __init__(
        self,
        store: AccountStore,
        rules: Optional[LedgerRules] = None,
        locks: Optional[AccountLockManager] = None
    ):
        self.store = store
        self.rules = rules or LedgerRules.from_config()
        self.locks = locks or AccountLockManager()

    def _rejected(self, action: str, number: int, error: LedgerError) -> None:
        log_action(
            logger, "warning", f"{action} rejected: {error.message}",
            action=action, resource="account", account_number=number,
            extra={"code": error.code}
        )

    def _load(self, number: int, message: str = "Account not found.") -> Account:
        account = self.store.find_by_number(number)
        if not account:
            raise AccountNotFoundError(message)
        return account

    def create_account(self, number: Any, account_type: Any, balance: Any = None) -> Account:
        """
        Open a new account.

        Args:
            number: Unique account number
            account_type: "Default", "Bonus" or "Saving"
            balance: Opening balance; optional for Bonus accounts

        Returns:
            The stored Account

        Raises:
            AccountConflictError: If the number is already taken
            InvalidArgumentError: If the type or opening balance is invalid
        """
        number = to_account_number(number)
        account_type = to_account_type(account_type)
        amount = None if balance is None else to_decimal(balance, "Initial balance")

        with self.locks.hold(number):
            if self.store.find_by_number(number):
                error = AccountConflictError("There is already an account created with this number.")
                self._rejected("create", number, error)
                raise error

            amount = opening_balance(account_type, amount, self.rules)
            account = self.store.create(
                number=number,
                account_type=account_type,
                balance=amount,
                bonus_score=initial_bonus_score(account_type, self.rules)
            )

        log_action(
            logger, "info", f"Account {number} created",
            action="create", resource="account", account_number=number,
            extra={"type": account_type.value, "balance": str(amount)}
        )
        return account

    def get_account_by_number(self, number: Any) -> Account:
        """Get an account or raise AccountNotFoundError"""
        return self._load(to_account_number(number))

    def get_balance(self, number: Any) -> Decimal:
        return self.get_account_by_number(number).balance

    def debit(self, number: Any, amount: Any) -> Account:
        """
        Take amount out of an account.

        Saving accounts cannot go below zero; Default and Bonus accounts
        cannot go below the overdraft floor. The bonus score is untouched.
        """
        number = to_account_number(number)
        amount = to_positive_amount(amount)

        with self.locks.hold(number):
            account = self._load(number)
            try:
                new_balance = check_debit_allowed(account, amount, self.rules, "Debit")
            except LedgerError as e:
                self._rejected("debit", number, e)
                raise
            updated = self.store.update(number, {"balance": new_balance})

        log_action(
            logger, "info", f"Debited {amount} from account {number}",
            action="debit", resource="account", account_number=number,
            extra={"amount": str(amount), "balance": str(updated.balance)}
        )
        return updated

    def credit(self, number: Any, amount: Any) -> Account:
        """Add amount to an account; Bonus accounts also earn bonus points"""
        number = to_account_number(number)
        amount = to_positive_amount(amount)

        with self.locks.hold(number):
            account = self._load(number)
            patch = incoming_patch(account, amount, BonusOperation.CREDIT, self.rules)
            updated = self.store.update(number, patch)

        log_action(
            logger, "info", f"Credited {amount} to account {number}",
            action="credit", resource="account", account_number=number,
            extra={"amount": str(amount), "balance": str(updated.balance)}
        )
        return updated

    def transfer(self, from_number: Any, to_number: Any, amount: Any) -> TransferResult:
        """
        Move amount between two accounts as one unit.

        The source follows the debit rules; a Bonus destination earns
        transfer bonus points. Either both accounts are updated or neither.
        """
        from_number = to_account_number(from_number, "From account number")
        to_number = to_account_number(to_number, "To account number")
        amount = to_positive_amount(amount)
        if from_number == to_number:
            raise InvalidArgumentError("Cannot transfer to the same account.")

        with self.locks.hold(from_number, to_number):
            from_account = self._load(from_number, "From account not found.")
            to_account = self._load(to_number, "To account not found.")

            try:
                new_from_balance = check_debit_allowed(from_account, amount, self.rules, "Transfer")
            except LedgerError as e:
                self._rejected("transfer", from_number, e)
                raise
            to_patch = incoming_patch(to_account, amount, BonusOperation.TRANSFER, self.rules)

            with self.store.atomic():
                updated_from = self.store.update(from_number, {"balance": new_from_balance})
                try:
                    updated_to = self.store.update(to_number, to_patch)
                except Exception as destination_error:
                    logger.error(
                        f"Transfer {from_number} -> {to_number} failed on destination, "
                        f"reversing source debit"
                    )
                    try:
                        self.store.update(from_number, {"balance": from_account.balance})
                    except Exception as reversal_error:
                        logger.error(
                            f"Reversing source debit of account {from_number} failed: {reversal_error}"
                        )
                    raise destination_error

        log_action(
            logger, "info", f"Transferred {amount} from account {from_number} to {to_number}",
            action="transfer", resource="account", account_number=from_number,
            extra={"to": to_number, "amount": str(amount)}
        )
        return TransferResult(from_account=updated_from, to_account=updated_to)

    def _accrue(self, number: int, rate: Decimal) -> Account:
        with self.locks.hold(number):
            account = self._load(number)
            new_balance = apply_interest(account.balance, rate)
            if account.account_type == AccountType.SAVING and new_balance < 0:
                error = InsufficientBalanceError("Interest would leave the saving account below zero.")
                self._rejected("interest", number, error)
                raise error
            return self.store.update(number, {"balance": new_balance})

    def yield_interest_for_account(self, number: Any, rate_percent: Any) -> Account:
        """Apply balance * rate / 100 to one account of any type"""
        number = to_account_number(number)
        rate = self._interest_rate(rate_percent)

        updated = self._accrue(number, rate)

        log_action(
            logger, "info", f"Interest of {rate}% applied to account {number}",
            action="interest", resource="account", account_number=number,
            extra={"rate": str(rate), "balance": str(updated.balance)}
        )
        return updated

    def yield_interest_for_all_savings(self, rate_percent: Any) -> List[Account]:
        """
        Apply interest to every Saving account.

        Each account is updated independently in store order. If one update
        fails the error is raised and accounts already processed keep their
        new balance.
        """
        rate = self._interest_rate(rate_percent)
        if rate < -100:
            raise InvalidArgumentError("Interest rate cannot be below -100 for saving accounts.")

        updated = [
            self._accrue(account.number, rate)
            for account in self.store.find_all_by_type(AccountType.SAVING)
        ]

        log_action(
            logger, "info", f"Interest of {rate}% applied to {len(updated)} saving accounts",
            action="interest", resource="account",
            extra={"rate": str(rate), "accounts": len(updated)}
        )
        return updated

    @staticmethod
    def _interest_rate(rate_percent: Any) -> Decimal:
        rate = to_decimal(rate_percent, "Interest rate")
        if rate == 0:
            raise InvalidArgumentError("Interest rate is required.")
        return rate
