"""API Dependencies - Authentication and roles"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from domain.auth import User, UserInDB
from domain.enums import StaffRole
from infrastructure.security import SECRET_KEY, ALGORITHM, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Mock staff accounts; passwords are hashed on first access
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Front Desk Admin",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "role": StaffRole.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "owner": {
        "username": "owner",
        "full_name": "Venue Owner",
        "email": "owner@example.com",
        "plain_password": "owner123",
        "role": StaffRole.OWNER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "instructor": {
        "username": "instructor",
        "full_name": "Quad Instructor",
        "email": "instructor@example.com",
        "plain_password": "instructor123",
        "role": StaffRole.INSTRUCTOR,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
}

fake_users_db = _fake_users_db

_password_hash_cache = {}

def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")

def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None

async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username, role=payload.get("role"))
    except JWTError:
        raise credentials_exception

    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user

async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

def require_roles(*roles: StaffRole):
    """Dependency factory admitting only the given staff roles"""
    async def _check(current_user: User = Depends(get_current_active_user)):
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(r.value for r in roles)}",
            )
        return current_user
    return _check
