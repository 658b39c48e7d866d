"""
Test suite for the transaction engine

Covers account creation, lookup, debit and credit policy, transfers with
their all-or-nothing guarantee, and interest accrual.
"""

import logging
import pytest
from decimal import Decimal
from unittest.mock import patch

from account_ledger.storage import InMemoryStorage, SQLiteStorage
from account_ledger.accounts import AccountStore, AccountType
from account_ledger.engine import TransactionEngine, TransferResult
from account_ledger.rules import LedgerRules
from account_ledger.exceptions import (
    AccountConflictError, AccountNotFoundError, InvalidArgumentError,
    InsufficientBalanceError, OverdraftExceededError, StorageError
)


class EngineTestCase:
    """Engine over in-memory storage with default rules"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.store = AccountStore(self.storage)
        self.engine = TransactionEngine(self.store, rules=LedgerRules())

    def balance(self, number):
        return self.store.find_by_number(number).balance


class TestCreateAccount(EngineTestCase):

    def test_create_default_account(self):
        account = self.engine.create_account(1, "Default", 1000)

        assert account.number == 1
        assert account.account_type == AccountType.DEFAULT
        assert account.balance == Decimal("1000")
        assert account.bonus_score is None
        assert account.id

    def test_create_saving_account(self):
        account = self.engine.create_account(2, "Saving", "500")
        assert account.account_type == AccountType.SAVING
        assert account.balance == Decimal("500")
        assert account.bonus_score is None

    def test_create_bonus_account(self):
        account = self.engine.create_account(3, "Bonus")
        assert account.balance == Decimal("0")
        assert account.bonus_score == 10

        funded = self.engine.create_account(4, AccountType.BONUS, 300)
        assert funded.balance == Decimal("300")
        assert funded.bonus_score == 10

    def test_duplicate_number_conflicts(self):
        self.engine.create_account(1, "Default", 1000)

        with pytest.raises(AccountConflictError):
            self.engine.create_account(1, "Bonus")

        assert self.engine.get_account_by_number(1).account_type == AccountType.DEFAULT

    def test_missing_or_unknown_type(self):
        with pytest.raises(InvalidArgumentError):
            self.engine.create_account(1, None, 100)
        with pytest.raises(InvalidArgumentError):
            self.engine.create_account(1, "Checking", 100)
        assert self.store.find_by_number(1) is None

    @pytest.mark.parametrize("account_type,balance", [
        ("Default", None),
        ("Default", 0),
        ("Saving", None),
        ("Saving", 0),
        ("Saving", -50),
    ])
    def test_funded_types_require_balance(self, account_type, balance):
        with pytest.raises(InvalidArgumentError):
            self.engine.create_account(7, account_type, balance)
        assert self.store.find_by_number(7) is None

    def test_invalid_number(self):
        with pytest.raises(InvalidArgumentError):
            self.engine.create_account(None, "Default", 10)
        with pytest.raises(InvalidArgumentError):
            self.engine.create_account("abc", "Default", 10)


class TestGetAccount(EngineTestCase):

    def test_get_existing_account(self):
        created = self.engine.create_account(1, "Default", 1000)
        assert self.engine.get_account_by_number(1) == created
        assert self.engine.get_account_by_number("1") == created
        assert self.engine.get_balance(1) == Decimal("1000")

    def test_get_missing_account(self):
        with pytest.raises(AccountNotFoundError, match="Account not found"):
            self.engine.get_account_by_number(123)


class TestDebit(EngineTestCase):

    def test_default_account_overdraft_floor(self):
        """Debiting down to exactly the floor succeeds, one unit further fails"""
        self.engine.create_account(1, "Default", 1000)

        with pytest.raises(OverdraftExceededError, match=r"\(-1000\)"):
            self.engine.debit(1, 2100)
        assert self.balance(1) == Decimal("1000")

        account = self.engine.debit(1, 2000)
        assert account.balance == Decimal("-1000")

        with pytest.raises(OverdraftExceededError):
            self.engine.debit(1, "0.01")
        assert self.balance(1) == Decimal("-1000")

    def test_saving_account_floor(self):
        self.engine.create_account(2, "Saving", 500)

        assert self.engine.debit(2, 500).balance == Decimal("0")

        with pytest.raises(InsufficientBalanceError):
            self.engine.debit(2, 1)
        assert self.balance(2) == Decimal("0")

    def test_bonus_account_uses_overdraft_floor(self):
        self.engine.create_account(3, "Bonus")

        account = self.engine.debit(3, 1000)
        assert account.balance == Decimal("-1000")
        assert account.bonus_score == 10

        with pytest.raises(OverdraftExceededError):
            self.engine.debit(3, 1)

    @pytest.mark.parametrize("amount", [None, 0, -10, "", "ten", "NaN"])
    def test_invalid_amount(self, amount):
        self.engine.create_account(1, "Default", 1000)
        with pytest.raises(InvalidArgumentError):
            self.engine.debit(1, amount)
        assert self.balance(1) == Decimal("1000")

    def test_missing_account(self):
        with pytest.raises(AccountNotFoundError):
            self.engine.debit(404, 10)

    def test_rejection_is_logged(self, caplog):
        self.engine.create_account(2, "Saving", 10)
        logger = logging.getLogger("ledger")
        propagate = logger.propagate
        logger.propagate = True
        try:
            with caplog.at_level(logging.WARNING, logger="ledger.engine"):
                with pytest.raises(InsufficientBalanceError):
                    self.engine.debit(2, 20)
        finally:
            logger.propagate = propagate
        assert any("debit rejected" in record.getMessage() for record in caplog.records)


class TestCredit(EngineTestCase):

    def test_credit_default_account(self):
        self.engine.create_account(1, "Default", 1000)
        account = self.engine.credit(1, "250.50")
        assert account.balance == Decimal("1250.50")
        assert account.bonus_score is None

    def test_credit_bonus_account_earns_points(self):
        self.engine.create_account(3, "Bonus")

        account = self.engine.credit(3, 250)
        assert account.balance == Decimal("250")
        assert account.bonus_score == 12

        account = self.engine.credit(3, 99)
        assert account.bonus_score == 12

        account = self.engine.credit(3, 1000)
        assert account.bonus_score == 22

    def test_credit_keeps_storage_id(self):
        created = self.engine.create_account(3, "Bonus")
        assert self.engine.credit(3, 10).id == created.id

    def test_invalid_amount(self):
        self.engine.create_account(1, "Default", 1000)
        with pytest.raises(InvalidArgumentError):
            self.engine.credit(1, -1)
        with pytest.raises(InvalidArgumentError):
            self.engine.credit(1, None)

    def test_missing_account(self):
        with pytest.raises(AccountNotFoundError):
            self.engine.credit(404, 10)


    def test_amount_too_large_for_bonus_account(self):
        self.engine.create_account(3, "Bonus")

        with pytest.raises(InvalidArgumentError):
            self.engine.credit(3, "1e30")

        account = self.store.find_by_number(3)
        assert account.balance == Decimal("0")
        assert account.bonus_score == 10

    def test_amount_that_would_round_balance(self):
        self.engine.create_account(1, "Default", 1)

        with pytest.raises(InvalidArgumentError):
            self.engine.credit(1, "1e30")
        with pytest.raises(InvalidArgumentError):
            self.engine.debit(1, "1e30")

        assert self.balance(1) == Decimal("1")


class TestTransfer(EngineTestCase):

    def test_transfer_to_bonus_account(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(3, "Bonus", 250)

        result = self.engine.transfer(1, 3, 500)

        assert isinstance(result, TransferResult)
        assert result.from_account.balance == Decimal("500")
        assert result.to_account.balance == Decimal("750")
        assert result.to_account.bonus_score == 10 + 500 // 150
        assert self.balance(1) == Decimal("500")
        assert self.balance(3) == Decimal("750")

    def test_transfer_bonus_uses_transfer_divisor(self):
        engine = TransactionEngine(self.store, rules=LedgerRules(transfer_bonus_divisor=200))
        engine.create_account(1, "Default", 1000)
        engine.create_account(3, "Bonus")

        result = engine.transfer(1, 3, 500)
        assert result.to_account.bonus_score == 12

    def test_transfer_from_bonus_leaves_score(self):
        self.engine.create_account(3, "Bonus", 300)
        self.engine.create_account(2, "Saving", 10)

        result = self.engine.transfer(3, 2, 300)
        assert result.from_account.bonus_score == 10
        assert result.to_account.balance == Decimal("310")

    def test_saving_source_cannot_go_negative(self):
        self.engine.create_account(2, "Saving", 100)
        self.engine.create_account(1, "Default", 1000)

        with pytest.raises(InsufficientBalanceError):
            self.engine.transfer(2, 1, "100.01")

        assert self.balance(2) == Decimal("100")
        assert self.balance(1) == Decimal("1000")

    def test_checking_source_overdraft_floor(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(3, "Bonus")

        with pytest.raises(OverdraftExceededError, match="^Transfer amount exceeds"):
            self.engine.transfer(1, 3, 2001)

        assert self.balance(1) == Decimal("1000")
        assert self.balance(3) == Decimal("0")
        assert self.store.find_by_number(3).bonus_score == 10

        self.engine.transfer(1, 3, 2000)
        assert self.balance(1) == Decimal("-1000")

    def test_missing_accounts(self):
        self.engine.create_account(1, "Default", 1000)

        with pytest.raises(AccountNotFoundError, match="From account not found"):
            self.engine.transfer(9, 1, 10)
        with pytest.raises(AccountNotFoundError, match="To account not found"):
            self.engine.transfer(1, 9, 10)

        assert self.balance(1) == Decimal("1000")

    def test_invalid_arguments(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(2, "Saving", 100)

        with pytest.raises(InvalidArgumentError):
            self.engine.transfer(1, None, 10)
        with pytest.raises(InvalidArgumentError):
            self.engine.transfer(1, 2, None)
        with pytest.raises(InvalidArgumentError):
            self.engine.transfer(1, 2, 0)
        with pytest.raises(InvalidArgumentError, match="same account"):
            self.engine.transfer(1, 1, 10)

    def test_destination_failure_reverses_source_debit(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(3, "Bonus", 250)

        original_update = self.store.update

        def failing_update(number, fields):
            if number == 3:
                raise StorageError("destination write failed")
            return original_update(number, fields)

        with patch.object(self.store, "update", side_effect=failing_update):
            with pytest.raises(StorageError):
                self.engine.transfer(1, 3, 500)

        assert self.balance(1) == Decimal("1000")
        assert self.balance(3) == Decimal("250")
        assert self.store.find_by_number(3).bonus_score == 10

    def test_destination_failure_on_sqlite_rolls_back(self):
        store = AccountStore(SQLiteStorage(":memory:"))
        engine = TransactionEngine(store, rules=LedgerRules())
        engine.create_account(1, "Default", 1000)
        engine.create_account(2, "Saving", 50)

        original_update = store.update

        def failing_update(number, fields):
            if number == 2:
                raise StorageError("destination write failed")
            return original_update(number, fields)

        with patch.object(store, "update", side_effect=failing_update):
            with pytest.raises(StorageError):
                engine.transfer(1, 2, 300)

        assert store.find_by_number(1).balance == Decimal("1000")
        assert store.find_by_number(2).balance == Decimal("50")

    def test_failed_reversal_raises_destination_error(self, caplog):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(2, "Default", 1000)

        original_update = self.store.update
        calls = []

        def failing_update(number, fields):
            calls.append(number)
            if number == 2:
                raise StorageError("destination write failed")
            if len(calls) > 2:
                raise StorageError("reversal write failed")
            return original_update(number, fields)

        logger = logging.getLogger("ledger")
        propagate = logger.propagate
        logger.propagate = True
        try:
            with caplog.at_level(logging.ERROR, logger="ledger.engine"):
                with patch.object(self.store, "update", side_effect=failing_update):
                    with pytest.raises(StorageError, match="destination write failed"):
                        self.engine.transfer(1, 2, 100)
        finally:
            logger.propagate = propagate

        assert calls == [1, 2, 1]
        assert "reversal write failed" in caplog.text

    def test_transfer_amount_that_would_round_balance(self):
        self.engine.create_account(1, "Default", 1)
        self.engine.create_account(3, "Bonus")

        with pytest.raises(InvalidArgumentError):
            self.engine.transfer(1, 3, "1e30")

        assert self.balance(1) == Decimal("1")
        assert self.balance(3) == Decimal("0")

    def test_conservation(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(2, "Saving", 500)
        self.engine.create_account(3, "Bonus")

        self.engine.transfer(1, 2, "123.45")
        self.engine.transfer(2, 3, "600")
        self.engine.transfer(3, 1, "0.55")

        total = sum(self.balance(n) for n in (1, 2, 3))
        assert total == Decimal("1500")


class TestInterest(EngineTestCase):

    def test_interest_for_single_account_any_type(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(2, "Saving", 200)
        self.engine.create_account(3, "Bonus", 400)

        assert self.engine.yield_interest_for_account(1, 5).balance == Decimal("1050")
        assert self.engine.yield_interest_for_account(2, "2.5").balance == Decimal("205")
        bonus = self.engine.yield_interest_for_account(3, 10)
        assert bonus.balance == Decimal("440")
        assert bonus.bonus_score == 10

    def test_interest_on_overdrawn_account(self):
        self.engine.create_account(1, "Default", -400)
        assert self.engine.yield_interest_for_account(1, 10).balance == Decimal("-440")

    def test_negative_rate_shrinks_balance(self):
        self.engine.create_account(2, "Saving", 1000)
        assert self.engine.yield_interest_for_account(2, -10).balance == Decimal("900")

    def test_saving_account_cannot_go_negative_from_interest(self):
        self.engine.create_account(2, "Saving", 1000)
        with pytest.raises(InsufficientBalanceError):
            self.engine.yield_interest_for_account(2, -150)
        assert self.balance(2) == Decimal("1000")

    @pytest.mark.parametrize("rate", [None, 0, "0", "", "five"])
    def test_rate_required(self, rate):
        self.engine.create_account(1, "Default", 1000)
        with pytest.raises(InvalidArgumentError):
            self.engine.yield_interest_for_account(1, rate)
        assert self.balance(1) == Decimal("1000")

    def test_missing_account(self):
        with pytest.raises(AccountNotFoundError):
            self.engine.yield_interest_for_account(404, 5)

    def test_interest_for_all_savings(self):
        self.engine.create_account(10, "Saving", 1000)
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(20, "Saving", 2000)
        self.engine.create_account(3, "Bonus", 100)

        updated = self.engine.yield_interest_for_all_savings(5)

        assert [account.number for account in updated] == [10, 20]
        assert [account.balance for account in updated] == [Decimal("1050"), Decimal("2100")]
        assert self.balance(1) == Decimal("1000")
        assert self.balance(3) == Decimal("100")

    def test_interest_for_all_savings_without_accounts(self):
        assert self.engine.yield_interest_for_all_savings(5) == []

    def test_interest_for_all_savings_rate_validation(self):
        self.engine.create_account(10, "Saving", 1000)
        with pytest.raises(InvalidArgumentError):
            self.engine.yield_interest_for_all_savings(None)
        with pytest.raises(InvalidArgumentError):
            self.engine.yield_interest_for_all_savings(-101)
        assert self.balance(10) == Decimal("1000")

    def test_partial_failure_keeps_earlier_updates(self):
        self.engine.create_account(10, "Saving", 1000)
        self.engine.create_account(20, "Saving", 2000)
        self.engine.create_account(30, "Saving", 3000)

        original_update = self.store.update

        def failing_update(number, fields):
            if number == 20:
                raise StorageError("write failed")
            return original_update(number, fields)

        with patch.object(self.store, "update", side_effect=failing_update):
            with pytest.raises(StorageError):
                self.engine.yield_interest_for_all_savings(10)

        assert self.balance(10) == Decimal("1100")
        assert self.balance(20) == Decimal("2000")
        assert self.balance(30) == Decimal("3000")


class TestScenarios(EngineTestCase):
    """End-to-end walk through the four account operations"""

    def test_full_walkthrough(self):
        self.engine.create_account(1, "Default", 1000)
        self.engine.create_account(2, "Saving", 500)
        self.engine.create_account(3, "Bonus")

        self.engine.debit(2, 500)
        with pytest.raises(InsufficientBalanceError):
            self.engine.debit(2, 1)

        bonus = self.engine.credit(3, 250)
        assert (bonus.balance, bonus.bonus_score) == (Decimal("250"), 12)

        result = self.engine.transfer(1, 3, 500)
        assert result.from_account.balance == Decimal("500")
        assert result.to_account.balance == Decimal("750")
        assert result.to_account.bonus_score == 12 + 3

        self.engine.credit(2, 100)
        savings = self.engine.yield_interest_for_all_savings(10)
        assert [account.balance for account in savings] == [Decimal("110")]
