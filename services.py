from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    Note,
    ReportPeriod,
    Transaction,
    TransactionCategory,
    TransactionType,
    User,
)
from periods import Period, month_window, resolve_period
from schemas import (
    NoteIn,
    NoteQuery,
    NoteUpdate,
    TransactionIn,
    TransactionQuery,
    TransactionUpdate,
    UserIn,
)

CENT = Decimal("0.01")
RECENT_TRANSACTIONS_LIMIT = 5


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def zero_buckets() -> dict[TransactionCategory, Decimal]:
    return {category: round_money(Decimal(0)) for category in TransactionCategory}


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def require(self, user_id: str) -> User:
        user = self.get(user_id)
        if not user:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def create(self, data: UserIn) -> User:
        if self.get(data.id):
            raise ConflictError(f"User already exists: {data.id}")
        existing_email = self.session.scalar(
            select(User.id).where(User.email == data.email)
        )
        if existing_email:
            raise ConflictError(f"Email already registered: {data.email}")
        user = User(id=data.id, email=data.email)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("User id or email already registered") from exc
        self.session.refresh(user)
        return user

    def get_or_create(self, data: UserIn) -> tuple[User, bool]:
        user = self.get(data.id)
        if user:
            return user, False
        return self.create(data), True

    def delete(self, user_id: str) -> bool:
        user = self.get(user_id)
        if not user:
            return False
        self.session.delete(user)
        self.session.commit()
        return True


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: TransactionIn) -> Transaction:
        UserService(self.session).require(data.user_id)
        txn = Transaction(
            user_id=data.user_id,
            type=data.type,
            amount=data.amount,
            category=data.category,
            description=data.description,
            transaction_date=data.transaction_date,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return txn

    def list_for_user(self, query: TransactionQuery) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == query.user_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.asc())
        )
        if query.type:
            stmt = stmt.where(Transaction.type == query.type)
        if query.category:
            stmt = stmt.where(Transaction.category == query.category)
        if query.offset:
            stmt = stmt.offset(query.offset)
        if query.limit:
            stmt = stmt.limit(query.limit)
        return list(self.session.scalars(stmt).all())

    def between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Transaction]:
        """Transactions dated within ``[start, end]``, both ends inclusive."""
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
            )
            .order_by(Transaction.transaction_date.desc(), Transaction.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def all_for_user(self, user_id: str) -> list[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        return list(self.session.scalars(stmt).all())

    def recent(
        self, user_id: str, limit: int = RECENT_TRANSACTIONS_LIMIT
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def update(self, data: TransactionUpdate) -> Transaction:
        txn = self.get(data.id)
        changes = data.model_dump(exclude_unset=True, exclude={"id"})
        for name, value in changes.items():
            setattr(txn, name, value)
        txn.touch()
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int, user_id: str) -> bool:
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.id == transaction_id, Transaction.user_id == user_id
            )
        )
        self.session.commit()
        return result.rowcount > 0


class NoteService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: NoteIn) -> Note:
        UserService(self.session).require(data.user_id)
        note = Note(user_id=data.user_id, title=data.title, content=data.content)
        self.session.add(note)
        self.session.commit()
        self.session.refresh(note)
        return note

    def get(self, note_id: int) -> Note:
        note = self.session.get(Note, note_id)
        if not note:
            raise NotFoundError(f"Note with id {note_id} not found")
        return note

    def list_for_user(self, query: NoteQuery) -> list[Note]:
        stmt = (
            select(Note)
            .where(Note.user_id == query.user_id)
            .order_by(Note.created_at.desc(), Note.id.desc())
        )
        if query.offset:
            stmt = stmt.offset(query.offset)
        if query.limit:
            stmt = stmt.limit(query.limit)
        return list(self.session.scalars(stmt).all())

    def update(self, data: NoteUpdate) -> Note:
        note = self.get(data.id)
        for name, value in data.model_dump(exclude_unset=True, exclude={"id"}).items():
            setattr(note, name, value)
        note.touch()
        self.session.commit()
        self.session.refresh(note)
        return note

    def delete(self, note_id: int, user_id: str) -> bool:
        result = self.session.execute(
            delete(Note).where(Note.id == note_id, Note.user_id == user_id)
        )
        self.session.commit()
        return result.rowcount > 0


@dataclass
class ReportData:
    period: ReportPeriod
    start_date: datetime
    end_date: datetime
    total_income: Decimal
    total_expenses: Decimal
    net_balance: Decimal
    transactions: list[Transaction]
    income_by_category: dict[TransactionCategory, Decimal]
    expenses_by_category: dict[TransactionCategory, Decimal]


@dataclass
class DashboardData:
    current_balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
    monthly_income: Decimal
    monthly_expenses: Decimal
    recent_transactions: list[Transaction] = field(default_factory=list)


class ReportService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def generate(
        self,
        user_id: str,
        period: ReportPeriod,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        now: Optional[datetime] = None,
    ) -> ReportData:
        UserService(self.session).require(user_id)
        resolved = resolve_period(period, start, end, now=now)
        transactions = TransactionService(self.session).between(
            user_id, resolved.start, resolved.end
        )
        return self.summarize(resolved, transactions)

    @staticmethod
    def summarize(period: Period, transactions: list[Transaction]) -> ReportData:
        total_income = Decimal(0)
        total_expenses = Decimal(0)
        income_by_category = zero_buckets()
        expenses_by_category = zero_buckets()

        for txn in transactions:
            if txn.type == TransactionType.income:
                total_income += txn.amount
                income_by_category[txn.category] += txn.amount
            else:
                total_expenses += txn.amount
                expenses_by_category[txn.category] += txn.amount

        total_income = round_money(total_income)
        total_expenses = round_money(total_expenses)
        return ReportData(
            period=ReportPeriod(period.slug),
            start_date=period.start,
            end_date=period.end,
            total_income=total_income,
            total_expenses=total_expenses,
            net_balance=total_income - total_expenses,
            transactions=transactions,
            income_by_category={
                k: round_money(v) for k, v in income_by_category.items()
            },
            expenses_by_category={
                k: round_money(v) for k, v in expenses_by_category.items()
            },
        )


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def summary(self, user_id: str, *, now: Optional[datetime] = None) -> DashboardData:
        UserService(self.session).require(user_id)
        txn_service = TransactionService(self.session)
        window = month_window(now)

        transactions = txn_service.all_for_user(user_id)

        total_income, total_expenses = self._totals(transactions)
        monthly_income, monthly_expenses = self._totals(
            txn
            for txn in transactions
            if window.start <= txn.transaction_date < window.end
        )
        return DashboardData(
            current_balance=round_money(total_income - total_expenses),
            total_income=total_income,
            total_expenses=total_expenses,
            monthly_income=monthly_income,
            monthly_expenses=monthly_expenses,
            recent_transactions=txn_service.recent(user_id),
        )

    @staticmethod
    def _totals(transactions: Iterable[Transaction]) -> tuple[Decimal, Decimal]:
        income = Decimal(0)
        expenses = Decimal(0)
        for txn in transactions:
            if txn.type == TransactionType.income:
                income += txn.amount
            else:
                expenses += txn.amount
        return round_money(income), round_money(expenses)
