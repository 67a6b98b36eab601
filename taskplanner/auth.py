from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .access import Actor
from .errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from .log import get_logger

logger = get_logger(__name__)

password_hasher = bcrypt.using(rounds=config.BCRYPT_ROUNDS)

# auto_error is off so a missing header goes through the shared error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    return password_hasher.hash(password)


def verify_password(plain_password, hashed_password):
    return password_hasher.verify(plain_password, hashed_password)


def create_access_token(user: models.User, expires_delta: timedelta = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user.id, "email": user.email, "role": user.role, "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Actor:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Invalid or expired token", "Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid or expired token", "Authentication failed")

    user_id = payload.get("sub")
    email = payload.get("email")
    try:
        role = models.UserRole(payload.get("role"))
    except ValueError:
        role = None
    if not user_id or not email or role is None:
        raise AuthenticationError("Invalid or expired token", "Authentication failed")
    return Actor(id=user_id, email=email, role=role)


def get_current_actor(token: Optional[str] = Depends(oauth2_scheme)) -> Actor:
    if not token:
        raise AuthenticationError("Authentication required", "No token provided")
    return decode_access_token(token)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise AuthorizationError("Insufficient permissions", "Access denied")
    return actor


def _auth_payload(user: models.User) -> schemas.AuthData:
    return schemas.AuthData(user=schemas.UserOut.model_validate(user), token=create_access_token(user))


def register_user(db: Session, user: schemas.UserCreate) -> schemas.AuthData:
    if crud.get_user_by_email(db, user.email):
        raise ConflictError("User already exists", "Email is already registered")
    db_user = crud.create_user(db, user, hash_password(user.password))
    logger.info("registered user %s (%s)", db_user.id, db_user.role)
    return _auth_payload(db_user)


def authenticate_user(db: Session, email: str, password: str) -> schemas.AuthData:
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        logger.info("failed login for %s", email)
        raise AuthenticationError("Authentication failed", "Invalid email or password")
    return _auth_payload(user)


def get_profile(db: Session, actor: Actor) -> models.User:
    user = crud.get_user_by_id(db, actor.id)
    if user is None:
        raise NotFoundError("User not found", "User does not exist")
    return user


def update_password(db: Session, actor: Actor, payload: schemas.PasswordUpdate) -> None:
    user = get_profile(db, actor)
    if not verify_password(payload.current_password, user.hashed_password):
        raise AuthenticationError("Password update failed", "Current password is incorrect")
    crud.set_user_password(db, user, hash_password(payload.new_password))
    logger.info("password updated for user %s", user.id)
