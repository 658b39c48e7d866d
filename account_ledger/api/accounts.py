"""
Account endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_engine
from .schemas import (
    CreateAccountRequest, AmountRequest, TransferRequest, InterestRequest, account_response
)
from ..engine import TransactionEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Create a new account"""
    account = engine.create_account(request.number, request.type, request.balance)
    return {
        "message": "Account created!",
        "account": account_response(account)
    }


@router.patch("/interest")
async def yield_interest_for_all_savings(
    request: InterestRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Apply interest to every saving account"""
    accounts = engine.yield_interest_for_all_savings(request.rate)
    return {
        "message": "Interest yielded successfully!",
        "updated_accounts": [account_response(account) for account in accounts]
    }


@router.get("/{number}")
async def get_account(
    number: str,
    engine: TransactionEngine = Depends(get_engine)
):
    """Get account details"""
    return account_response(engine.get_account_by_number(number))


@router.get("/{number}/balance")
async def get_account_balance(
    number: str,
    engine: TransactionEngine = Depends(get_engine)
):
    """Get account balance"""
    return {"balance": str(engine.get_balance(number))}


@router.patch("/{number}/debit")
async def debit_from_account(
    number: str,
    request: AmountRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Debit an amount from an account"""
    account = engine.debit(number, request.amount)
    return {
        "message": "Amount debited from account successfully!",
        "updated_account": account_response(account)
    }


@router.patch("/{number}/credit")
async def credit_to_account(
    number: str,
    request: AmountRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Credit an amount to an account"""
    account = engine.credit(number, request.amount)
    return {
        "message": "Amount credited to account successfully!",
        "updated_account": account_response(account)
    }


@router.patch("/{number}/transfer")
async def transfer_amount(
    number: str,
    request: TransferRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Transfer an amount from this account to another"""
    result = engine.transfer(number, request.to, request.amount)
    return {
        "message": "Amount transferred successfully!",
        "from_account": account_response(result.from_account),
        "to_account": account_response(result.to_account)
    }


@router.patch("/{number}/interest")
async def yield_interest_for_account(
    number: str,
    request: InterestRequest,
    engine: TransactionEngine = Depends(get_engine)
):
    """Apply interest to one account"""
    account = engine.yield_interest_for_account(number, request.rate)
    return {
        "message": "Interest yielded successfully!",
        "updated_account": account_response(account)
    }
