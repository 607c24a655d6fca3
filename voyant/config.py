import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# LLM
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")

# persistence
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///voyant.db")
SESSION_STORE = os.getenv("SESSION_STORE", "memory")  # memory | sql
SESSION_TTL_SEC = int(os.getenv("SESSION_TTL_SEC", "3600"))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "30"))

# cascade thresholds
CASCADE_HIGH = float(os.getenv("CASCADE_HIGH", "0.90"))
CASCADE_MEDIUM = float(os.getenv("CASCADE_MEDIUM", "0.75"))
CASCADE_LOW = float(os.getenv("CASCADE_LOW", "0.60"))

# features
DEEP_RESEARCH_ENABLED = _flag("DEEP_RESEARCH_ENABLED", "true")
TRANSFORMERS_ENABLED = _flag("TRANSFORMERS_ENABLED")
LOCATION_VALIDATION = _flag("LOCATION_VALIDATION")
SEARCH_SUMMARY = _flag("SEARCH_SUMMARY", "true")

# local models (only loaded when TRANSFORMERS_ENABLED)
ZERO_SHOT_MODEL = os.getenv("ZERO_SHOT_MODEL", "facebook/bart-large-mnli")
NER_MODEL = os.getenv("NER_MODEL", "dslim/bert-base-NER")

# external services
HTTP_TIMEOUT_SEC = int(os.getenv("HTTP_TIMEOUT_SEC", "15"))
AMADEUS_CLIENT_ID = os.getenv("AMADEUS_CLIENT_ID")
AMADEUS_CLIENT_SECRET = os.getenv("AMADEUS_CLIENT_SECRET")
AMADEUS_HOSTNAME = os.getenv("AMADEUS_HOSTNAME", "test")
BRAVE_API_KEY = os.getenv("BRAVE_API_KEY") or os.getenv("BRAVE_SEARCH_API_KEY")
OPENTRIPMAP_API_KEY = os.getenv("OPENTRIPMAP_API_KEY")
VECTARA_API_KEY = os.getenv("VECTARA_API_KEY")
VECTARA_CORPUS_KEY = os.getenv("VECTARA_CORPUS_KEY")
