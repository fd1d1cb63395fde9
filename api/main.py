import secrets
from functools import lru_cache

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from services.analysis import EmailAnalyzer, build_analyzer
from services.config import Settings, load_settings
from services.db import HistoryStore, history_entry
from services.errors import InvalidEntryError
from services.lists import LIST_KINDS, OverrideListRepository
from services.logging_utils import get_logger
from services.parser import email_data_from_dict, parse_raw_email
from services.signals import EmailData

app = FastAPI(title="Email Security Scorer")
logger = get_logger(__name__)

security = HTTPBasic()

LIST_FIELDS = ("emails", "domains")


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


@lru_cache()
def get_lists() -> OverrideListRepository:
    return OverrideListRepository(get_settings().lists_path)


@lru_cache()
def get_history() -> HistoryStore:
    settings = get_settings()
    return HistoryStore(settings.db_path, limit=settings.history_limit)


@lru_cache()
def get_analyzer() -> EmailAnalyzer:
    return build_analyzer(get_settings(), get_lists())


def get_current_username(
    credentials: HTTPBasicCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
):
    """
    Verify Basic Auth credentials.
    Using secrets.compare_digest to prevent timing attacks.
    """
    correct_username = secrets.compare_digest(credentials.username, settings.admin_username)
    correct_password = secrets.compare_digest(credentials.password, settings.admin_password)

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def _check_list_path(kind: str, field: str = "emails"):
    if kind not in LIST_KINDS or field not in LIST_FIELDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown list")


async def _analyze_and_record(
    email: EmailData, analyzer: EmailAnalyzer, history: HistoryStore
) -> dict:
    result = await analyzer.analyze(email)
    history.record(history_entry(email, result))
    return result.to_dict()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/analyze")
async def analyze_email(
    email: dict = Body(...),
    analyzer: EmailAnalyzer = Depends(get_analyzer),
    history: HistoryStore = Depends(get_history),
):
    """
    Score an email given as JSON:
    {from, subject, body, headers, urls?, attachments: [{name, type, size}]}
    """
    try:
        data = email_data_from_dict(email)
    except InvalidEntryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return await _analyze_and_record(data, analyzer, history)


@app.post("/analyze/raw")
async def analyze_raw_email(
    request: Request,
    analyzer: EmailAnalyzer = Depends(get_analyzer),
    history: HistoryStore = Depends(get_history),
):
    """Score a raw RFC 822 message sent as the request body."""
    raw = await request.body()
    if not raw.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty message")
    return await _analyze_and_record(parse_raw_email(raw), analyzer, history)


@app.get("/history")
async def list_history(limit: int = 10, history: HistoryStore = Depends(get_history)):
    return {"entries": history.list_entries(limit)}


@app.delete("/history")
async def clear_history(
    history: HistoryStore = Depends(get_history),
    username: str = Depends(get_current_username),
):
    history.clear()
    logger.info("history cleared", extra={"admin": username})
    return {"status": "cleared"}


@app.get("/lists/{kind}")
async def get_list(kind: str, lists: OverrideListRepository = Depends(get_lists)):
    _check_list_path(kind)
    return lists.get(kind).to_dict()


@app.post("/lists/{kind}/{field}")
async def add_list_entry(
    kind: str,
    field: str,
    payload: dict = Body(...),
    lists: OverrideListRepository = Depends(get_lists),
    username: str = Depends(get_current_username),
):
    _check_list_path(kind, field)
    try:
        updated = lists.add(kind, field, str(payload.get("value") or ""))
    except InvalidEntryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return updated.to_dict()


@app.delete("/lists/{kind}/{field}/{value}")
async def remove_list_entry(
    kind: str,
    field: str,
    value: str,
    lists: OverrideListRepository = Depends(get_lists),
    username: str = Depends(get_current_username),
):
    _check_list_path(kind, field)
    updated = lists.remove(kind, field, value)
    logger.info("override list entry removed", extra={"list": kind, "admin": username})
    return updated.to_dict()
