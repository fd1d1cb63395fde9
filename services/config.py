import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")

# Free OpenRouter models, tried in order when one is rate limited or gone
DEFAULT_LLM_MODELS = (
    "arcee-ai/trinity-large-preview:free",
    "meta-llama/llama-4-maverick:free",
    "deepseek/deepseek-chat-v3-0324:free",
    "mistralai/mistral-small-3.1-24b-instruct:free",
    "nousresearch/deephermes-3-llama-3-8b-preview:free",
)


@dataclass(frozen=True)
class Settings:
    virustotal_api_key: Optional[str] = None
    virustotal_url: str = "https://www.virustotal.com/api/v3"
    vt_timeout: float = 15.0
    vt_max_urls: int = 2
    vt_pacing_seconds: float = 0.5

    openrouter_api_key: Optional[str] = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    llm_models: Tuple[str, ...] = DEFAULT_LLM_MODELS
    llm_timeout: float = 30.0

    whitelist_damping: float = 0.5

    lists_path: str = os.path.join(DATA_DIR, "lists.json")
    db_path: str = os.path.join(DATA_DIR, "history.db")
    history_limit: int = 50

    admin_username: str = "admin"
    admin_password: str = "admin"


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _get_models() -> Tuple[str, ...]:
    raw = os.getenv("LLM_MODELS", "")
    models = tuple(m.strip() for m in raw.split(",") if m.strip())
    return models or DEFAULT_LLM_MODELS


def load_settings() -> Settings:
    """
    Build Settings from the environment (and .env, if present).
    Missing API keys leave the matching oracle disabled.
    """
    load_dotenv()

    return Settings(
        virustotal_api_key=os.getenv("VIRUSTOTAL_API_KEY") or None,
        virustotal_url=os.getenv("VIRUSTOTAL_URL", Settings.virustotal_url),
        vt_timeout=_get_float("VT_TIMEOUT", Settings.vt_timeout),
        vt_max_urls=_get_int("VT_MAX_URLS", Settings.vt_max_urls),
        vt_pacing_seconds=_get_float("VT_PACING_SECONDS", Settings.vt_pacing_seconds),
        openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
        openrouter_url=os.getenv("OPENROUTER_URL", Settings.openrouter_url),
        llm_models=_get_models(),
        llm_timeout=_get_float("LLM_TIMEOUT", Settings.llm_timeout),
        whitelist_damping=_get_float("WHITELIST_DAMPING", Settings.whitelist_damping),
        lists_path=os.getenv("LISTS_PATH", Settings.lists_path),
        db_path=os.getenv("DB_PATH", Settings.db_path),
        history_limit=_get_int("HISTORY_LIMIT", Settings.history_limit),
        admin_username=os.getenv("ADMIN_USERNAME", Settings.admin_username),
        admin_password=os.getenv("ADMIN_PASSWORD", Settings.admin_password),
    )
