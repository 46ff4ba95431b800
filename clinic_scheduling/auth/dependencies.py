import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_scheduling.auth import jwt_handler
from clinic_scheduling.auth.permissions import ROLES, CallerContext

security = HTTPBearer()


def caller_from_claims(payload: dict) -> CallerContext:
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = (payload.get("role") or "").strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token role")

    dentist_id = payload.get("dentist_id")
    if dentist_id is not None:
        try:
            dentist_id = int(dentist_id)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=401, detail="Invalid token dentist") from exc

    return CallerContext(subject=subject, role=role, dentist_id=dentist_id)


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CallerContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    return caller_from_claims(payload)
