"""
Account storage.

This store never writes ``balance`` after the row is created; balances
move only through the transaction ledger.
"""

from typing import Any

from pocket_ledger.models.entities import Account, utc_now
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.sql_store import SqlEntityStore


class AccountStore(SqlEntityStore[Account]):
    table = tables.accounts
    model = Account
    entity_type = "account"
    mutable_columns = ("name", "icon")
    money_columns = ("balance",)

    def _order_by(self) -> list:
        return [self.table.c.created_at.desc(), self.table.c.id]

    def _check_create(self, account: Account) -> None:
        self._validator.check_new_account(account)

    def _update_values(self, account: Account) -> dict[str, Any]:
        values = super()._update_values(account)
        values["updated_at"] = utc_now()
        return values
