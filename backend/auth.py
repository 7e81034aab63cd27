# File: backend/auth.py

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

import crud, database, errors, models, schemas
from config import settings

logger = logging.getLogger(__name__)

# --- CONFIGURATION ---

# 1. Password Hashing
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# 2. OAuth2 Scheme
# This tells FastAPI what the "login" endpoint will be
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")


@dataclass(frozen=True)
class Principal:
    username: str
    role: models.Role

    @property
    def is_admin(self) -> bool:
        return self.role == models.Role.admin

# --- UTILITY FUNCTIONS ---

def verify_password(plain_password, hashed_password):
    """Checks if the plain password matches the stored hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    """Hashes a plain password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Creates a new JWT Access Token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)

# --- AUTHENTICATION & AUTHORIZATION ---

def authenticate_user(db: Session, username: str, password: str):
    """
    Finds a user in the DB and verifies their password.
    Returns the user object if successful, otherwise None.
    """
    user = crud.get_user_by_username(db, username=username)
    if not user:
        return None  # User doesn't exist
    if not verify_password(password, user.hashed_password):
        return None  # Incorrect password

    return user

def login(db: Session, username: str, password: str) -> Principal:
    """The gateway the registry core sees: credentials in, (username, role) out."""
    user = authenticate_user(db, username, password)
    if user is None:
        logger.warning("Failed login for '%s'", username)
        raise errors.AuthError("Incorrect username or password")
    return Principal(username=user.username, role=models.Role(user.role))

def get_current_user(db: Session = Depends(database.get_db), token: str = Depends(oauth2_scheme)):
    """
    Dependency to get the current user from a token.
    This will be used to protect our endpoints.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = schemas.TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = crud.get_user_by_username(db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user

def get_current_admin_user(current_user: models.User = Depends(get_current_user)):
    """
    Dependency that checks if the current user is an admin.
    If not, it raises a 403 Forbidden error.
    """
    if current_user.role != models.Role.admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires admin role"
        )
    return current_user
