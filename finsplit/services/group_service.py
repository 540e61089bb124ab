"""Group resolution for new expenses and group listings for the chat."""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finsplit.models import Account, Expense, Group, GroupMember, GroupRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupSummary:
    """Group line shown by the "grupos" command."""

    group_id: int
    name: str
    member_count: int
    expense_count: int


class GroupService:
    """Service for the groups an account's expenses land in."""

    def __init__(self, db: Session, default_group_name: str = "Despesas Gerais"):
        self.db = db
        self.default_group_name = default_group_name

    def _latest_membership_group(self, account_id: int) -> Group | None:
        return self.db.execute(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.account_id == account_id)
            .order_by(GroupMember.joined_at.desc(), GroupMember.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _is_member(self, group_id: int, account_id: int) -> bool:
        return (
            self.db.execute(
                select(GroupMember.id).where(
                    GroupMember.group_id == group_id,
                    GroupMember.account_id == account_id,
                )
            ).first()
            is not None
        )

    def find_or_create_default_group(self, account: Account) -> Group:
        """Resolve the group a new expense from this account goes to.

        Order:
            1. the group the account joined most recently
            2. the tenant's oldest group, adding the account as MEMBER
            3. a new default group with the account as ADMIN

        Changes are flushed, not committed; the caller commits them together
        with the expense.
        """
        group = self._latest_membership_group(account.id)
        if group is not None:
            return group

        group = self.db.execute(
            select(Group)
            .where(Group.tenant_id == account.tenant_id)
            .order_by(Group.created_at.asc(), Group.id.asc())
            .limit(1)
        ).scalar_one_or_none()

        if group is not None:
            if not self._is_member(group.id, account.id):
                self.db.add(
                    GroupMember(group_id=group.id, account_id=account.id, role=GroupRole.MEMBER)
                )
                self.db.flush()
                logger.info("groups: added account %s to group %s as member", account.id, group.id)
            return group

        group = Group(
            name=self.default_group_name,
            description="Grupo criado automaticamente para despesas enviadas pelo WhatsApp",
            tenant_id=account.tenant_id,
        )
        self.db.add(group)
        self.db.flush()
        self.db.add(GroupMember(group_id=group.id, account_id=account.id, role=GroupRole.ADMIN))
        self.db.flush()
        logger.info("groups: created default group %s for account %s", group.id, account.id)
        return group

    def list_groups_for_account(self, account_id: int) -> list[GroupSummary]:
        """Groups the account belongs to with member and expense counts, newest first."""
        member_count = (
            select(func.count(GroupMember.id))
            .where(GroupMember.group_id == Group.id)
            .correlate(Group)
            .scalar_subquery()
        )
        expense_count = (
            select(func.count(Expense.id))
            .where(Expense.group_id == Group.id)
            .correlate(Group)
            .scalar_subquery()
        )
        rows = self.db.execute(
            select(Group.id, Group.name, member_count, expense_count)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.account_id == account_id)
            .order_by(Group.created_at.desc(), Group.id.desc())
        ).all()
        return [
            GroupSummary(group_id=row[0], name=row[1], member_count=row[2], expense_count=row[3])
            for row in rows
        ]


__all__ = ["GroupService", "GroupSummary"]
