"""
Goal storage.

Creating or deleting a goal together with its dedicated account is done
by the transaction ledger (``create_goal`` / ``delete_goal``) because it
involves balances. This store handles the goal row itself.
"""

from pocket_ledger.models.entities import Goal, GoalStatus
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.sql_store import SqlEntityStore


class GoalStore(SqlEntityStore[Goal]):
    table = tables.goals
    model = Goal
    entity_type = "goal"
    mutable_columns = (
        "title",
        "emoji",
        "target_amount",
        "target_date",
        "include_balance",
        "monthly_contribution",
        "status",
    )
    money_columns = ("target_amount", "monthly_contribution")

    def _order_by(self) -> list:
        return [self.table.c.target_date, self.table.c.id]

    def _check_create(self, goal: Goal) -> None:
        self._validator.check_goal(goal)

    def _check_update(self, goal: Goal) -> None:
        self._validator.check_goal(goal)

    async def mark_completed(self, goal_id: str, user_id: str) -> bool:
        """Set a goal's status to completed. A missing goal is a no-op."""
        goal = await self.get_by_id(goal_id, user_id)
        if goal is None:
            return False
        return await self.update(goal.model_copy(update={"status": GoalStatus.COMPLETED}))
