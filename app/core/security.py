from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)

def create_jwt(payload: dict, secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    data = payload.copy()
    data.update({"iat": int(now.timestamp()), "exp": int((now + expires_delta).timestamp())})
    return jwt.encode(data, secret, algorithm=ALGORITHM)

def decode_jwt(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=[ALGORITHM])

def create_access_token(user_id: str, email: str | None, role: str | None) -> str:
    return create_jwt(
        {"sub": str(user_id), "email": email, "role": role},
        settings.JWT_SECRET,
        timedelta(minutes=settings.JWT_TTL_MINUTES),
    )

def decode_access_token(token: str) -> dict | None:
    try:
        return decode_jwt(token, settings.JWT_SECRET)
    except JWTError:
        return None
