from __future__ import annotations

import logging

from sqlalchemy.orm import Session
from web3 import Web3

from ..models import Account

logger = logging.getLogger("raffle.treasury")


def normalise_address(address: str) -> str:
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


class Treasury:
    """Custody of funds: the raffle pool and the balances of paid-out accounts."""

    def _get_or_create(self, session: Session, address: str) -> Account:
        account = session.get(Account, address)
        if account is None:
            account = Account(address=address, balance="0", accepts_payments=True)
            session.add(account)
            session.flush()
        return account

    def balance_of(self, session: Session, address: str) -> int:
        account = session.get(Account, normalise_address(address))
        return account.get_balance() if account is not None else 0

    def register_account(
        self, session: Session, address: str, accepts_payments: bool = True
    ) -> Account:
        account = self._get_or_create(session, normalise_address(address))
        account.accepts_payments = accepts_payments
        session.flush()
        return account

    def deposit(self, session: Session, address: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("deposit amount must not be negative")
        account = self._get_or_create(session, normalise_address(address))
        account.set_balance(account.get_balance() + amount)
        session.flush()
        return account.get_balance()

    def transfer(self, session: Session, sender: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``recipient``.

        Returns ``False`` without touching either balance when the recipient
        refuses incoming payments; raises ``ValueError`` when the sender
        cannot cover the amount.
        """
        source = self._get_or_create(session, normalise_address(sender))
        target = self._get_or_create(session, normalise_address(recipient))
        if not target.accepts_payments:
            logger.warning("Recipient %s rejected transfer of %s", target.address, amount)
            return False
        if source.get_balance() < amount:
            raise ValueError(f"{source.address} cannot cover transfer of {amount}")
        source.set_balance(source.get_balance() - amount)
        target.set_balance(target.get_balance() + amount)
        session.flush()
        return True
