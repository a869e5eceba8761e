import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from auth import AuthSession, get_auth_session
from config import get_settings
from database import get_db
from schemas import (
    DashboardOut,
    DeleteIn,
    DeleteResult,
    LoginIn,
    NoteIn,
    NoteOut,
    NoteQuery,
    NoteUpdate,
    ReportIn,
    ReportOut,
    SessionOut,
    TransactionIn,
    TransactionOut,
    TransactionQuery,
    TransactionUpdate,
    UserIn,
    UserLookup,
    UserOut,
)
from services import (
    ConflictError,
    DashboardService,
    NoteService,
    NotFoundError,
    ReportService,
    TransactionService,
    UserService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="NopiFin")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def http_error(procedure: str, exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    logger.warning(f"{procedure} failed: status={status_code} detail={exc}")
    return HTTPException(status_code=status_code, detail=str(exc))


@app.get("/healthcheck")
def healthcheck():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/auth/login", response_model=SessionOut)
def login(
    payload: LoginIn,
    auth: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    try:
        user, created = UserService(db).get_or_create(
            UserIn(id=payload.id, email=payload.email)
        )
    except ValueError as exc:
        raise http_error("login", exc) from exc
    token = auth.login(user)
    logger.info(f"login: user_id={user.id} first_sign_in={created}")
    return SessionOut(token=token, user=UserOut.model_validate(user))


@app.post("/auth/logout", response_model=DeleteResult)
def logout(auth: AuthSession = Depends(get_auth_session)):
    """Tokens are stateless signed ids; the client drops its copy to sign out.

    The token keeps authenticating until it expires.
    """
    if auth.is_authenticated:
        logger.info(f"logout: user_id={auth.user.id}")
    auth.logout()
    return DeleteResult(success=True)


@app.get("/auth/me", response_model=UserOut)
def me(auth: AuthSession = Depends(get_auth_session)):
    if not auth.is_authenticated:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return UserOut.model_validate(auth.user)


@app.post("/rpc/createUser", response_model=UserOut)
def create_user(payload: UserIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).create(payload)
    except ValueError as exc:
        raise http_error("createUser", exc) from exc
    logger.info(f"user_created: user_id={user.id}")
    return UserOut.model_validate(user)


@app.post("/rpc/getUser", response_model=Optional[UserOut])
def get_user(payload: UserLookup, db: Session = Depends(get_db)):
    user = UserService(db).get(payload.id)
    return UserOut.model_validate(user) if user else None


@app.post("/rpc/createTransaction", response_model=TransactionOut)
def create_transaction(payload: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(payload)
    except ValueError as exc:
        raise http_error("createTransaction", exc) from exc
    logger.info(
        f"transaction_created: id={txn.id} user_id={txn.user_id} "
        f"type={txn.type.value} amount={txn.amount}"
    )
    return TransactionOut.model_validate(txn)


@app.post("/rpc/getTransactionsByUser", response_model=list[TransactionOut])
def get_transactions_by_user(payload: TransactionQuery, db: Session = Depends(get_db)):
    items = TransactionService(db).list_for_user(payload)
    return [TransactionOut.model_validate(txn) for txn in items]


@app.post("/rpc/updateTransaction", response_model=TransactionOut)
def update_transaction(payload: TransactionUpdate, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).update(payload)
    except ValueError as exc:
        raise http_error("updateTransaction", exc) from exc
    logger.info(f"transaction_updated: id={txn.id}")
    return TransactionOut.model_validate(txn)


@app.post("/rpc/deleteTransaction", response_model=DeleteResult)
def delete_transaction(payload: DeleteIn, db: Session = Depends(get_db)):
    success = TransactionService(db).delete(payload.id, payload.user_id)
    logger.info(
        f"transaction_deleted: id={payload.id} user_id={payload.user_id} "
        f"success={success}"
    )
    return DeleteResult(success=success)


@app.post("/rpc/createNote", response_model=NoteOut)
def create_note(payload: NoteIn, db: Session = Depends(get_db)):
    try:
        note = NoteService(db).create(payload)
    except ValueError as exc:
        raise http_error("createNote", exc) from exc
    logger.info(f"note_created: id={note.id} user_id={note.user_id}")
    return NoteOut.model_validate(note)


@app.post("/rpc/getUserNotes", response_model=list[NoteOut])
def get_user_notes(payload: NoteQuery, db: Session = Depends(get_db)):
    return [NoteOut.model_validate(n) for n in NoteService(db).list_for_user(payload)]


@app.post("/rpc/updateNote", response_model=NoteOut)
def update_note(payload: NoteUpdate, db: Session = Depends(get_db)):
    try:
        note = NoteService(db).update(payload)
    except ValueError as exc:
        raise http_error("updateNote", exc) from exc
    logger.info(f"note_updated: id={note.id}")
    return NoteOut.model_validate(note)


@app.post("/rpc/deleteNote", response_model=DeleteResult)
def delete_note(payload: DeleteIn, db: Session = Depends(get_db)):
    success = NoteService(db).delete(payload.id, payload.user_id)
    logger.info(
        f"note_deleted: id={payload.id} user_id={payload.user_id} success={success}"
    )
    return DeleteResult(success=success)


@app.post("/rpc/getDashboardData", response_model=DashboardOut)
def get_dashboard_data(payload: UserLookup, db: Session = Depends(get_db)):
    try:
        data = DashboardService(db).summary(payload.id)
    except ValueError as exc:
        raise http_error("getDashboardData", exc) from exc
    return DashboardOut.model_validate(data)


@app.post("/rpc/generateReport", response_model=ReportOut)
def generate_report(payload: ReportIn, db: Session = Depends(get_db)):
    try:
        report = ReportService(db).generate(
            payload.user_id, payload.period, payload.start_date, payload.end_date
        )
    except ValueError as exc:
        raise http_error("generateReport", exc) from exc
    except Exception:
        logger.exception("Report generation failed")
        raise
    logger.info(
        f"report_generated: user_id={payload.user_id} period={report.period.value} "
        f"transactions={len(report.transactions)}"
    )
    return ReportOut.model_validate(report)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=get_settings().server_port)


if __name__ == "__main__":
    main()
