"""Authentication module using bcrypt password hashes and signed session tokens.

This module provides:
1. User registration with salted, deliberately slow bcrypt hashes
2. Login issuing one hour JWT session tokens
3. Stateless token verification and the FastAPI guards protecting routes
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional, Dict, Any

import bcrypt
from fastapi import Header, HTTPException, Request, status
from jose import jwt

from database import DocumentStore, DuplicateKeyError

# Configure logging
logger = logging.getLogger(__name__)

# Constants
TOKEN_EXPIRY_MINUTES = 60
JWT_ALGORITHM = "HS256"
USERS = 'users'
MAX_PASSWORD_BYTES = 72  # bcrypt only looks at the first 72 bytes


class AuthError(Exception):
    """Base exception for authentication errors."""
    pass


class AuthValidationError(AuthError):
    """Raised when registration or login input is missing or malformed."""
    pass


class DuplicateEmailError(AuthError):
    """Raised when registering an email that already exists."""
    pass


class UserNotFoundError(AuthError):
    """Raised when no user matches the login email."""
    pass


class InvalidCredentialsError(AuthError):
    """Raised when the password does not match the stored hash."""
    pass


class UnauthenticatedError(AuthError):
    """Raised when a protected operation is called without a token."""
    pass


class InvalidTokenError(AuthError):
    """Raised when a token has a bad signature, bad claims or has expired."""
    pass


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


class AuthManager:
    """Manages user credentials and session tokens."""

    def __init__(self, store: DocumentStore, secret: str, rounds: int = 10):
        """Initialize auth manager.

        Args:
            store: Document store holding the users collection
            secret: Server-held key used to sign tokens
            rounds: bcrypt cost factor; 10 costs tens of milliseconds per hash
        """
        self.store = store
        self._secret = secret
        self.rounds = rounds

    async def _in_thread(self, func, *args):
        # bcrypt is CPU bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
        except ValueError:
            return False

    async def register(self, username: str, email: str, password: str) -> str:
        """Create a user record.

        Args:
            username: Display name
            email: Login email, unique across users
            password: Plaintext password, only its hash is stored

        Returns:
            The new user's id

        Raises:
            AuthValidationError: If a field is missing or malformed
            DuplicateEmailError: If the email is already registered
        """
        username = (username or '').strip()
        email = normalize_email(email)
        missing = [
            name for name, value in (('username', username), ('email', email), ('password', password))
            if not value
        ]
        if missing:
            raise AuthValidationError(f"Missing required fields: {', '.join(missing)}")
        if '@' not in email:
            raise AuthValidationError("Email address is not valid")
        if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
            raise AuthValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        if await self.store.find_one(USERS, email=email):
            raise DuplicateEmailError("Email already registered")

        password_hash = await self._in_thread(self._hash_password, password)

        try:
            user = await self.store.insert(USERS, {
                'username': username,
                'email': email,
                'password_hash': password_hash,
                'created_at': datetime.now(timezone.utc)
            })
        except DuplicateKeyError:
            # Lost a race with a concurrent registration of the same email
            raise DuplicateEmailError("Email already registered")

        logger.info(f"User registered: {user['id']}")
        return user['id']

    async def authenticate(self, email: str, password: str) -> str:
        """Check credentials and issue a session token.

        Raises:
            AuthValidationError: If email or password is missing
            UserNotFoundError: If no user matches the email
            InvalidCredentialsError: If the password does not match
        """
        email = normalize_email(email)
        if not email or not password:
            raise AuthValidationError("Email and password are required")

        user = await self.store.find_one(USERS, email=email)
        if not user:
            raise UserNotFoundError("User not found")

        if not await self._in_thread(self._check_password, password, user['password_hash']):
            logger.warning(f"Failed login attempt for user {user['id']}")
            raise InvalidCredentialsError("Invalid credentials")

        return self.issue_token(user['id'])

    def issue_token(self, user_id: str, now: Optional[datetime] = None) -> str:
        """Sign a token for user_id valid for TOKEN_EXPIRY_MINUTES."""
        issued_at = now or datetime.now(timezone.utc)
        return jwt.encode(
            {
                'sub': str(user_id),
                'iat': issued_at,
                'exp': issued_at + timedelta(minutes=TOKEN_EXPIRY_MINUTES)
            },
            self._secret,
            algorithm=JWT_ALGORITHM
        )

    def verify(self, token: Optional[str]) -> Dict[str, Any]:
        """Verify a session token without touching the store.

        Returns:
            Dict with the authenticated ``user_id``

        Raises:
            UnauthenticatedError: If no token was supplied
            InvalidTokenError: If the signature, claims or expiry check fails
        """
        if not token:
            raise UnauthenticatedError("Access denied")

        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except jwt.JWTError as e:
            raise InvalidTokenError(f"Invalid token: {str(e)}")

        if not payload.get('sub'):
            raise InvalidTokenError("Invalid token: missing subject")

        return {'user_id': payload['sub']}


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an Authorization header value.

    Accepts ``Bearer <token>`` as well as a bare token.
    """
    if not authorization or not authorization.strip():
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1]
    return authorization.strip()


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """FastAPI dependency guarding protected routes.

    Returns:
        The resolved identity, also stored on request.state.user

    Raises:
        HTTPException: 401 when the token is missing, 400 when it is invalid or expired
    """
    manager: AuthManager = request.app.state.auth
    try:
        user = manager.verify(extract_token(authorization))
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    request.state.user = user
    return user


async def get_reader(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> Optional[Dict[str, Any]]:
    """Guard for read routes, open to everyone when public_catalog_reads is on."""
    if request.app.state.settings['public_catalog_reads']:
        return None
    return await get_current_user(request, authorization)


# Export public interface
__all__ = [
    'AuthManager',
    'get_current_user',
    'get_reader',
    'extract_token',
    'AuthError',
    'AuthValidationError',
    'DuplicateEmailError',
    'UserNotFoundError',
    'InvalidCredentialsError',
    'UnauthenticatedError',
    'InvalidTokenError',
    'TOKEN_EXPIRY_MINUTES'
]
