from datetime import datetime, timedelta
from typing import Optional
import logging
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from config import settings
from database import get_db
from document_store import DocumentStore, COLLECTION_USERS
from models import AuthAccount, UserRole
from schemas import SessionUser

logger = logging.getLogger(__name__)

# Security configuration
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/auth/login")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against a hash"""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def create_access_token(account: AuthAccount, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token bound to the account's current token version"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": account.uid,
        "email": account.email,
        "ver": account.token_version,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_account_by_email(db: AsyncSession, email: str) -> Optional[AuthAccount]:
    result = await db.execute(
        select(AuthAccount).where(AuthAccount.email == email.lower())
    )
    return result.scalar_one_or_none()


async def get_account_by_uid(db: AsyncSession, uid: str) -> Optional[AuthAccount]:
    result = await db.execute(
        select(AuthAccount).where(AuthAccount.uid == uid)
    )
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[AuthAccount]:
    """Email/password sign-in. Returns None on unknown email or wrong password."""
    account = await get_account_by_email(db, email)
    if not account or not verify_password(password, account.hashed_password):
        return None
    return account


async def sign_out(db: AsyncSession, account: AuthAccount) -> None:
    """Invalidate every token issued to this account so far"""
    account.token_version = (account.token_version or 0) + 1
    await db.commit()


async def get_current_account(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> AuthAccount:
    """Get the signed-in account behind a bearer token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        uid: str = payload.get("sub")
        version = payload.get("ver")
        if uid is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    account = await get_account_by_uid(db, uid)

    # A bumped token version means the account signed out since issuance
    if account is None or account.token_version != version:
        raise credentials_exception

    if not account.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    return account


async def load_session_user(db: AsyncSession, account: AuthAccount) -> SessionUser:
    """
    Merge the identity with its profile document.

    A missing profile, or a failure to read it, degrades to a minimal user
    with the `user` role instead of blocking sign-in.
    """
    base = {"uid": account.uid, "email": account.email}
    try:
        profile = await DocumentStore(db).get(COLLECTION_USERS, account.uid)
    except Exception as e:
        logger.error(f"Error fetching user profile for {account.uid}: {e}", exc_info=True)
        return SessionUser(**base, role=UserRole.USER.value)

    if not profile:
        return SessionUser(**base, role=UserRole.USER.value)

    merged = {**base, **{k: v for k, v in profile.items() if k not in ("id", "uid")}}
    merged["email"] = merged.get("email") or account.email
    merged["role"] = profile.get("role") or UserRole.USER.value
    return SessionUser(**merged)


async def get_current_user(
    account: AuthAccount = Depends(get_current_account),
    db: AsyncSession = Depends(get_db)
) -> SessionUser:
    """Get the current session user (identity + profile)"""
    return await load_session_user(db, account)


async def require_super_admin(
    account: AuthAccount = Depends(get_current_account),
    db: AsyncSession = Depends(get_db)
) -> SessionUser:
    """
    Route guard for every dashboard endpoint.
    Any role other than super_admin is signed out on the spot.
    """
    user = await load_session_user(db, account)
    if user.role != UserRole.SUPER_ADMIN.value:
        logger.warning(f"Signing out {account.email}: role '{user.role}' is not allowed")
        await sign_out(db, account)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required"
        )
    return user
