import logging
from typing import Any, List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, insert, update, literal
from sqlalchemy.exc import IntegrityError
from dossier.models.operator import Operator
from dossier.core.security import hash_secret, verify_secret, decode_access_token
from dossier.core.permissions import serialize_allowed_sections
from dossier.core.exceptions import (
    ConflictException,
    InvalidCredentialsException,
    OperatorDisabledException,
    ResourceNotFoundException,
    ValidationFailedException,
)

logger = logging.getLogger(__name__)


class OperatorService:
    """Service for operator lookup, login, bearer authentication and administration."""

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    @staticmethod
    async def get_operator_by_email(
        db: AsyncSession,
        email: str
    ) -> Optional[Operator]:
        """
        Get operator by email (case-insensitive).

        Args:
            db: Database session
            email: Login email

        Returns:
            Operator record or None
        """
        result = await db.execute(
            select(Operator).where(Operator.email == OperatorService.normalize_email(email))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_operator_by_id(
        db: AsyncSession,
        operator_id: int
    ) -> Optional[Operator]:
        """Get operator by ID."""
        result = await db.execute(
            select(Operator).where(Operator.id == operator_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate_token(
        db: AsyncSession,
        token: Optional[str]
    ) -> Optional[Operator]:
        """
        Resolve a bearer token to a live operator.

        Returns None when the token fails verification, has expired, names an
        operator that no longer exists or is disabled, or was issued before the
        operator's last forced logout (token_version mismatch).
        """
        if not token:
            return None

        claims = decode_access_token(token)
        if not claims:
            return None

        try:
            operator_id = int(claims.get("sub"))
        except (TypeError, ValueError):
            return None

        operator = await OperatorService.get_operator_by_id(db, operator_id)
        if operator is None or operator.is_disabled:
            return None

        version = claims.get("ver", 0)
        if isinstance(version, bool) or not isinstance(version, int):
            return None
        if version != (operator.token_version or 0):
            logger.debug(f"Stale token rejected for operator_id={operator.id}")
            return None

        return operator

    @staticmethod
    async def bootstrap_master(
        db: AsyncSession,
        email: str,
        password: str
    ) -> Optional[Operator]:
        """
        Create the first operator as master, only while the operators table is empty.

        The insert is guarded by NOT EXISTS so two concurrent first logins cannot
        both create a master. Returns the new operator, or None when another
        operator already exists.
        """
        normalized = OperatorService.normalize_email(email)
        guard = ~select(Operator.id).exists()
        stmt = insert(Operator).from_select(
            ["email", "name", "password_hash", "is_master", "is_disabled", "token_version", "allowed_sections"],
            select(
                literal(normalized),
                literal(normalized.split("@")[0]),
                literal(hash_secret(password)),
                literal(True),
                literal(False),
                literal(0),
                literal(serialize_allowed_sections(None)),
            ).where(guard)
        )
        try:
            result = await db.execute(stmt)
        except IntegrityError:
            await db.rollback()
            return None

        if not result.rowcount:
            return None

        await db.commit()
        logger.info(f"Bootstrapped first master operator: {normalized[:3]}***")
        return await OperatorService.get_operator_by_email(db, normalized)

    @staticmethod
    async def login(
        db: AsyncSession,
        email: str,
        password: str
    ) -> Tuple[Operator, bool]:
        """
        Check login credentials.

        Raises:
            ValidationFailedException if email or password is missing
            InvalidCredentialsException for unknown email or wrong password
            OperatorDisabledException if the account is disabled
        """
        if not email or not password:
            raise ValidationFailedException(detail="Email and password are required")

        operator = await OperatorService.get_operator_by_email(db, email)
        if operator is None:
            operator = await OperatorService.bootstrap_master(db, email, password)
            if operator is None:
                raise InvalidCredentialsException()
            return operator, True

        if not verify_secret(password, operator.password_hash):
            raise InvalidCredentialsException()

        if operator.is_disabled:
            raise OperatorDisabledException()

        return operator, False

    @staticmethod
    async def record_login(db: AsyncSession, operator: Operator) -> None:
        operator.last_login_at = datetime.now(timezone.utc)
        await db.commit()

    @staticmethod
    async def list_operators(db: AsyncSession) -> List[Operator]:
        result = await db.execute(select(Operator).order_by(Operator.id))
        return list(result.scalars().all())

    @staticmethod
    async def create_operator(
        db: AsyncSession,
        email: str,
        password: str,
        name: Optional[str] = None,
        allowed_sections: Any = None,
        is_master: bool = False
    ) -> Operator:
        """
        Create a new operator.

        Args:
            db: Database session
            email: Login email (stored lower-cased)
            password: Plain password, stored as a digest
            name: Display name
            allowed_sections: Policy; normalized before storage
            is_master: Whether the operator bypasses the policy engine

        Returns:
            Created Operator record

        Raises:
            ConflictException if the email is already registered
        """
        normalized = OperatorService.normalize_email(email)
        if await OperatorService.get_operator_by_email(db, normalized):
            raise ConflictException(detail="Operator already exists")

        operator = Operator(
            email=normalized,
            name=name or normalized.split("@")[0],
            password_hash=hash_secret(password),
            is_master=is_master,
            is_disabled=False,
            token_version=0,
            allowed_sections=serialize_allowed_sections(allowed_sections),
        )
        db.add(operator)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException(detail="Operator already exists")
        await db.refresh(operator)

        logger.info(f"Operator created: operator_id={operator.id}, is_master={operator.is_master}")
        return operator

    @staticmethod
    async def update_operator(
        db: AsyncSession,
        acting_operator: Operator,
        operator_id: int,
        allowed_sections: Any = None,
        is_disabled: Optional[bool] = None,
        password: Optional[str] = None,
        force_logout: bool = False,
        is_master: Optional[bool] = None
    ) -> Operator:
        """
        Apply an administrative update to an operator.

        force_logout bumps token_version, which invalidates every token issued
        before the update. Disabling also forces logout.

        Raises:
            ResourceNotFoundException if the operator does not exist
            ValidationFailedException if a master tries to disable itself
        """
        operator = await OperatorService.get_operator_by_id(db, operator_id)
        if operator is None:
            raise ResourceNotFoundException(detail="Operator not found")

        if is_disabled and operator.id == acting_operator.id:
            raise ValidationFailedException(detail="You cannot disable your own account")

        if allowed_sections is not None:
            operator.allowed_sections = serialize_allowed_sections(allowed_sections)
        if password:
            operator.password_hash = hash_secret(password)
        if is_master is not None:
            operator.is_master = is_master
        if is_disabled is not None:
            operator.is_disabled = is_disabled

        await db.flush()
        if force_logout or is_disabled:
            await db.execute(
                update(Operator)
                .where(Operator.id == operator.id)
                .values(token_version=Operator.token_version + 1)
            )

        await db.commit()
        await db.refresh(operator)

        logger.info(
            f"Operator updated: operator_id={operator.id}, disabled={operator.is_disabled}, "
            f"token_version={operator.token_version}"
        )
        return operator
