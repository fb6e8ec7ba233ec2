import logging
import os
from typing import List

from dotenv import load_dotenv

from standings.models.tie_breaking import PositionPolicy

load_dotenv()

logger = logging.getLogger(__name__)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_SPORT_CODE = os.getenv("DEFAULT_SPORT_CODE", "pk_championship")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

_policy = os.getenv("POSITION_POLICY", PositionPolicy.SHARED.value).lower()
try:
    POSITION_POLICY = PositionPolicy(_policy)
except ValueError:
    logger.warning("Unknown POSITION_POLICY %r, using %s", _policy, PositionPolicy.SHARED.value)
    POSITION_POLICY = PositionPolicy.SHARED


def cors_origins() -> List[str]:
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    extra = os.getenv("CORS_ORIGINS", "")
    if extra:
        origins.extend(o.strip() for o in extra.split(",") if o.strip())
    return origins
