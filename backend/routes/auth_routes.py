import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user
from backend.auth.passwords import hash_password, verify_password
from backend.crud import users as users_crud
from backend.database import get_db
from backend.models.user import User
from backend.schemas.appointment import CamelModel

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

# bcrypt only accepts passwords up to 72 bytes.
MAX_PASSWORD_BYTES = 72


class RegisterRequest(BaseModel):
    email: str
    password: str
    role: str
    name: str
    phone: str | None = None
    dob: str | None = None
    specialty: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in users_crud.ROLES:
            raise ValueError('Invalid role.')
        return normalized

    @field_validator('name', 'password')
    @classmethod
    def validate_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Missing required fields.')
        return value

    @field_validator('password')
    @classmethod
    def validate_password_length(cls, value: str) -> str:
        if len(value.encode()) > MAX_PASSWORD_BYTES:
            raise ValueError(f'Password must be {MAX_PASSWORD_BYTES} bytes or fewer.')
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserSummary(CamelModel):
    id: int
    email: str
    role: str
    name: str


class AuthResponse(CamelModel):
    token: str
    user: UserSummary


class UserProfileResponse(UserSummary):
    phone: str | None = None
    dob: str | None = None
    specialty: str | None = None


def _auth_response(user: User) -> AuthResponse:
    token = jwt_handler.create_access_token(user_id=user.id, role=user.role, email=user.email)
    return AuthResponse(
        token=token,
        user=UserSummary(id=user.id, email=user.email, role=user.role, name=user.name),
    )


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if users_crud.get_user_by_email(db, data.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already registered')

    user = users_crud.create_user(
        db,
        email=data.email,
        hashed_password=hash_password(data.password),
        role=data.role,
        name=data.name.strip(),
        phone=data.phone,
        dob=data.dob,
        specialty=data.specialty if data.role == users_crud.ROLE_DOCTOR else None,
    )
    logger.info('Registered %s account %s', user.role, user.id)
    return _auth_response(user)


@router.post('/login', response_model=AuthResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email and password required')

    user = users_crud.get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')

    return _auth_response(user)


@router.post('/logout')
def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy.
    del current_user
    return {'message': 'Logged out successfully'}


@router.get('/me', response_model=UserProfileResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserProfileResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        name=current_user.name,
        phone=current_user.phone,
        dob=current_user.dob,
        specialty=current_user.specialty,
    )
