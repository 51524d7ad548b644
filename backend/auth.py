import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from passlib.context import CryptContext
from jose import jwt, JWTError
from pydantic import BaseModel

import database
from dependencies import get_env_int

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("JWT_SECRET", "supersecret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = get_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 12)

router = APIRouter()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class UserCreate(BaseModel):
    username: str
    password: str
    full_name: Optional[str] = None
    organization_name: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str


# Utility functions
def get_password_hash(password):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _username_from_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        return None
    return payload.get("sub")


# Signup endpoint
@router.post("/signup", response_model=Token)
def signup(user: UserCreate):
    if database.users_collection.find_one({"username": user.username}):
        raise HTTPException(status_code=400, detail="Username already registered")

    database.users_collection.insert_one({
        "username": user.username,
        "hashed_password": get_password_hash(user.password),
        "full_name": user.full_name,
        "organization_name": user.organization_name,
        "created_at": datetime.now(timezone.utc),
    })
    logger.info("Registered user %s", user.username)

    access_token = create_access_token({"sub": user.username})
    return {"access_token": access_token, "token_type": "bearer"}


# Login endpoint
@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    user = database.users_collection.find_one({"username": form_data.username})
    if not user or not verify_password(form_data.password, user["hashed_password"]):
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    access_token = create_access_token({"sub": form_data.username})
    return {"access_token": access_token, "token_type": "bearer"}


# Dependency to get current user
async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    username = _username_from_token(token)
    if username is None:
        raise credentials_exception
    user = database.users_collection.find_one({"username": username})
    if user is None:
        logger.info("User not found for username: %s", username)
        raise credentials_exception
    return user


async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)):
    """Like get_current_user, but returns None so the route can shape its own 401"""
    username = _username_from_token(token)
    if username is None:
        return None
    return database.users_collection.find_one({"username": username})
