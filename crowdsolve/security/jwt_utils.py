# crowdsolve/security/jwt_utils.py
import jwt
from fastapi import HTTPException, Request, status

from crowdsolve import config


def decode_token(token: str) -> dict:
    """
    Decodifica y valida el JWT (para WebSocket u otros).
    Lanza 401 si es inválido.
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token without subject",
        )
    return payload


def get_current_user(authorization_header: str) -> dict:
    """
    Toma el header: Authorization: Bearer <token>
    Lo valida y devuelve el payload.
    Lanza 401 si falta o es inválido.
    """
    if not authorization_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )

    if not authorization_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )

    token = authorization_header.removeprefix("Bearer ").strip()
    return decode_token(token)


def current_user_id(request: Request) -> str:
    """Dependencia FastAPI: devuelve el 'sub' del JWT como string."""
    current = get_current_user(request.headers.get("Authorization", ""))
    return str(current["sub"])
