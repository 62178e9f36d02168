import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from watchlist import config
from watchlist.database import get_async_session
from watchlist.deps.guards import guarded
from watchlist.deps.permissions import Role, permissions_for, role_description
from watchlist.email_service import send_code_email
from watchlist.limiter import limiter
from watchlist.models.user_model import AdminBootstrap, User
from watchlist.schemas.user_schemas import (
    CreateAdminResponse, LoginRequest, LoginResponse, MeResponse, MessageResponse,
    RegisterRequest, RegisterResponse, ResendVerificationRequest, TokenResponse, UserOut,
    VerifyCodeRequest, VerifyEmailResponse,
)
from watchlist.utils.code_utils import CodeCheck, check_code, issue_code
from watchlist.utils.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

BAD_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "A user with this email already exists"


def _normalize_email(email: str) -> str:
    return str(email).strip()


async def _find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def _dispatch_code(email: str, code: str, purpose: str) -> None:
    # Delivery failures are logged inside send_code_email; the code stays valid.
    await run_in_threadpool(send_code_email, email, code, purpose)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def register(request: Request, payload: RegisterRequest, db: AsyncSession = Depends(get_async_session)):
    email = _normalize_email(payload.email)

    if await _find_user_by_email(db, email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    hashed = await run_in_threadpool(hash_password, payload.password)
    code, expiry = issue_code(config.VERIFICATION_CODE_TTL_MINUTES)

    new_user = User(
        email=email,
        password=hashed,
        role=Role.USER.value,
        email_verified=False,
        verification_code=code,
        verification_code_expiry=expiry,
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent registration won the unique index on users.email
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    logger.info("Registered user %s (id=%s)", email, new_user.id)
    await _dispatch_code(email, code, "registration")

    return RegisterResponse(
        message="Registration successful. Check your email to activate your account.",
        user_id=new_user.id,
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(payload: VerifyCodeRequest, db: AsyncSession = Depends(get_async_session)):
    user = await _find_user_by_email(db, _normalize_email(payload.email))
    if not user:
        raise _unauthorized("Invalid verification code")

    if user.email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")

    outcome = check_code(user.verification_code, user.verification_code_expiry, payload.code)
    if outcome is CodeCheck.INVALID:
        raise _unauthorized("Invalid verification code")
    if outcome is CodeCheck.EXPIRED:
        raise _unauthorized("Verification code expired")

    user.email_verified = True
    user.verification_code = None
    user.verification_code_expiry = None
    await db.commit()

    return VerifyEmailResponse(
        message="Email verified. You can now log in.",
        verified=True,
    )


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def resend_verification(
    request: Request,
    payload: ResendVerificationRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Issue a fresh registration code, replacing any pending one.

    Always answers with the same message so the endpoint cannot be used to
    probe which addresses are registered.
    """
    generic = MessageResponse(
        message="If an unverified account exists, a new verification code has been sent.",
    )

    user = await _find_user_by_email(db, _normalize_email(payload.email))
    if not user or user.email_verified:
        return generic

    code, expiry = issue_code(config.VERIFICATION_CODE_TTL_MINUTES)
    user.verification_code = code
    user.verification_code_expiry = expiry
    await db.commit()

    await _dispatch_code(user.email, code, "registration")
    return generic


@router.post("/login", response_model=LoginResponse)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def login(request: Request, payload: LoginRequest, db: AsyncSession = Depends(get_async_session)):
    user = await _find_user_by_email(db, _normalize_email(payload.email))

    # One message for every failure so callers cannot tell which check failed.
    if not user or not user.email_verified:
        raise _unauthorized(BAD_CREDENTIALS)
    if not await run_in_threadpool(verify_password, payload.password, user.password):
        raise _unauthorized(BAD_CREDENTIALS)

    # Overwrites any unconsumed code; concurrent logins race and the last one wins.
    code, expiry = issue_code(config.LOGIN_CODE_TTL_MINUTES)
    user.login_code = code
    user.login_code_expiry = expiry
    await db.commit()

    await _dispatch_code(user.email, code, "login")

    return LoginResponse(message="Login code sent by email.", login_code_sent=True)


@router.post("/verify-login", response_model=TokenResponse)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def verify_login(request: Request, payload: VerifyCodeRequest, db: AsyncSession = Depends(get_async_session)):
    user = await _find_user_by_email(db, _normalize_email(payload.email))
    if not user:
        raise _unauthorized("Invalid login code")

    outcome = check_code(user.login_code, user.login_code_expiry, payload.code)
    if outcome is CodeCheck.INVALID:
        raise _unauthorized("Invalid login code")
    if outcome is CodeCheck.EXPIRED:
        raise _unauthorized("Login code expired")

    # Sign before consuming the code so a signing failure leaves it usable.
    access_token = create_access_token(user)

    user.login_code = None
    user.login_code_expiry = None
    await db.commit()

    return TokenResponse(access_token=access_token, user=UserOut.model_validate(user))


@router.post("/create-admin", response_model=CreateAdminResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def create_admin(request: Request, payload: RegisterRequest, db: AsyncSession = Depends(get_async_session)):
    """Create the first administrator. Closed for good once it has succeeded."""
    existing_admin = await db.execute(select(User.id).where(User.role == Role.ADMIN.value).limit(1))
    if existing_admin.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An administrator already exists. Contact the current administrator.",
        )

    email = _normalize_email(payload.email)
    if await _find_user_by_email(db, email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    hashed = await run_in_threadpool(hash_password, payload.password)
    admin = User(
        email=email,
        password=hashed,
        role=Role.ADMIN.value,
        email_verified=True,
    )
    try:
        db.add(admin)
        await db.flush()
        # primary key 1 is the bootstrap marker; a second insert fails
        db.add(AdminBootstrap(id=1, user_id=admin.id))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An administrator already exists. Contact the current administrator.",
        )

    logger.info("Bootstrap administrator created: %s (id=%s)", email, admin.id)
    return CreateAdminResponse(
        message="Administrator created. You can now log in.",
        user_id=admin.id,
        role=admin.role,
    )


@router.get("/me", response_model=MeResponse)
async def me(current_user: User = Depends(guarded("auth.me"))):
    return MeResponse(
        user=UserOut.model_validate(current_user),
        permissions=sorted(p.value for p in permissions_for(current_user.role)),
        role_description=role_description(current_user.role),
        timestamp=datetime.now(timezone.utc),
    )
