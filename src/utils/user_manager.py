"""User management utilities.

This module provides identity storage, password hashing and authentication.
Every identity owns exactly one profile; role and school assignment happen
later through registration, invitations or school codes.
"""

import logging
import uuid
from typing import Optional

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, UnauthorizedError
from models.profile import ProfileModel
from models.user import UserModel
from utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

# Use bcrypt directly instead of passlib to avoid initialization issues
# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


class UserManager:
    """Manages identities and profiles using SQLAlchemy."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            clock: Callable returning the current aware datetime.
        """
        self.db = db
        self.clock = clock

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        try:
            return bcrypt.checkpw(
                _password_bytes(plain_password), hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def create_identity(
        self,
        email: str,
        password: str,
        full_name: str,
        user_type: Optional[str] = None,
        school_id: Optional[str] = None,
    ) -> ProfileModel:
        """Stage an identity and its profile without committing.

        Callers that build several rows in one transaction (school
        registration, student self-registration) commit themselves.

        Args:
            email: Lower-cased email address.
            password: Plain text password.
            full_name: Display name.
            user_type: Optional role to assign immediately.
            school_id: Optional school to assign immediately.

        Returns:
            The staged ProfileModel.

        Raises:
            ConflictError: If the email is already registered.
        """
        email = email.strip().lower()
        if self.get_user_by_email(email) is not None:
            raise ConflictError(f"An account with email '{email}' already exists")

        now = self.clock().isoformat()
        user = UserModel(
            user_id=uuid.uuid4().hex,
            email=email,
            password_hash=self.hash_password(password),
            create_at=now,
        )
        self.db.add(user)
        self.db.flush()

        profile = ProfileModel(
            id=user.user_id,
            full_name=full_name,
            email=email,
            user_type=user_type,
            school_id=school_id,
            create_at=now,
            update_at=now,
        )
        self.db.add(profile)
        self.db.flush()
        return profile

    def signup(self, email: str, password: str, full_name: str) -> ProfileModel:
        """Create an identity with no role assigned.

        Raises:
            ConflictError: If the email is already registered.
        """
        try:
            profile = self.create_identity(email, password, full_name)
            self.db.commit()
        except IntegrityError as e:
            # Handle a concurrent signup slipping past the pre-check
            self.db.rollback()
            raise ConflictError(f"An account with email '{email}' already exists") from e
        except ConflictError:
            self.db.rollback()
            raise

        self.db.refresh(profile)
        logger.info("Created user: %s", profile.id)
        return profile

    def authenticate(self, email: str, password: str) -> UserModel:
        """Return the identity for valid credentials.

        Raises:
            UnauthorizedError: If the email is unknown or the password is wrong.
        """
        user = self.get_user_by_email(email)
        if user is None or not self.verify_password(password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")
        return user

    def get_user_by_email(self, email: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.email == email.strip().lower())
            .first()
        )

    def get_user_by_id(self, user_id: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.user_id == user_id).first()

    def get_profile(self, user_id: str) -> Optional[ProfileModel]:
        return self.db.query(ProfileModel).filter(ProfileModel.id == user_id).first()


def profile_to_dict(profile: ProfileModel) -> dict:
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "email": profile.email,
        "user_type": profile.user_type,
        "school_id": profile.school_id,
    }
