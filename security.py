import json
import logging
from typing import Optional

import bcrypt
from fastapi import Header, HTTPException

from settings import get_settings

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=get_settings().bcrypt_rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        logger.warning("Unreadable password hash, treating as mismatch")
        return False


def parse_capability(authorization):
    """Decode ``Bearer {"is_leader": .., "is_admin": ..}`` into a dict.

    Raises 401 when the header is missing or unreadable, 403 when neither
    flag is set.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized - Leader access required")

    try:
        auth_data = json.loads(authorization[len("Bearer "):])
    except ValueError:
        raise HTTPException(status_code=401, detail="Unauthorized - Invalid token")
    if not isinstance(auth_data, dict):
        raise HTTPException(status_code=401, detail="Unauthorized - Invalid token")

    if not auth_data.get("is_leader") and not auth_data.get("is_admin"):
        logger.info("Privileged call refused for %s", auth_data.get("name", "<anonymous>"))
        raise HTTPException(status_code=403, detail="Forbidden - Leader access required")
    return auth_data


def require_leader(authorization: Optional[str] = Header(default=None)):
    return parse_capability(authorization)
