import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import JWT_ALGORITHM, JWT_SECRET

bearer_scheme = HTTPBearer(auto_error=False)


def decode_user_id(token: str) -> int:
    """Return the user id carried in the ``sub`` claim of a signed token."""
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    return int(payload["sub"])


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int:
    if credentials is None:
        raise HTTPException(status_code=401, detail={"msg": "Authentication required."})
    try:
        return decode_user_id(credentials.credentials)
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        logging.warning("Rejected bearer token: %s", exc)
        raise HTTPException(status_code=401, detail={"msg": "Invalid or expired token."})
