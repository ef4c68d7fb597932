import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from dossier.config import settings
from dossier.models.share_link import ShareLink
from dossier.models.subject import Subject
from dossier.core.security import generate_share_token
from dossier.core.logging_utils import mask_share_token
from dossier.services.subject_service import SubjectService

logger = logging.getLogger(__name__)

# Disclosure categories a share link can allow
DISCLOSURE_TABS = ["Profile", "Intel", "Capabilities", "History", "Network", "Files", "Map"]

# Always disclosed, whatever the allowed tabs
HEADER_FIELDS = [
    "id", "full_name", "alias", "occupation", "nationality",
    "threat_level", "avatar_path", "status",
]

# Nulled unless "Profile" is allowed
PROFILE_FIELDS = [
    "dob", "age", "height", "weight", "blood_type",
    "modus_operandi", "identifying_marks",
]

# Emptied unless their tab is allowed
LIST_TABS = {
    "interactions": "History",
    "locations": "Map",
    "media": "Files",
    "intel": "Intel",
    "skills": "Capabilities",
    "relationships": "Network",
}


class ShareOutcome(str, enum.Enum):
    """Result kind of resolving a share link."""
    OK = "ok"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"  # revoked, or flipped inactive by an earlier expiry
    EXPIRED = "expired"  # window elapsed during this resolve
    LOCATION_REQUIRED = "location_required"


class ShareLinkStatus(str, enum.Enum):
    CREATED = "created"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass
class ShareResolution:
    """Typed outcome of ShareLinkService.resolve."""
    outcome: ShareOutcome
    link: Optional[ShareLink] = None
    payload: Optional[Dict[str, Any]] = None
    partial: Optional[Dict[str, Any]] = None
    sighting_recorded: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome == ShareOutcome.OK


@dataclass
class ShareLinkSummary:
    """Listing view of one link, evaluated against a single clock reading."""
    token: str
    status: ShareLinkStatus
    is_active: bool
    views: int
    duration_seconds: int
    remaining_seconds: int
    started_at: Optional[datetime]
    expires_at: Optional[datetime]
    require_location: bool
    allowed_tabs: Optional[List[str]]
    created_at: Optional[datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def remaining_seconds(duration_seconds: int, started_at: datetime, now: datetime) -> int:
    """
    Whole seconds left in a window, floored.

    Elapsed time is clamped at zero so clock skew between writers never
    extends a window.
    """
    elapsed = max(0.0, (now - started_at).total_seconds())
    return math.floor(duration_seconds - elapsed)


def normalize_allowed_tabs(allowed_tabs: Optional[Sequence[str]]) -> Optional[List[str]]:
    """Known tabs only, first occurrence wins. None means every tab."""
    if allowed_tabs is None:
        return None
    tabs: List[str] = []
    for tab in allowed_tabs:
        if tab in DISCLOSURE_TABS and tab not in tabs:
            tabs.append(tab)
    return tabs


def effective_tabs(link: ShareLink) -> List[str]:
    if link.allowed_tabs is None:
        return list(DISCLOSURE_TABS)
    return normalize_allowed_tabs(link.allowed_tabs) or []


def filter_disclosure(
    subject: Subject,
    details: Dict[str, List[Dict[str, Any]]],
    allowed_tabs: Sequence[str]
) -> Dict[str, Any]:
    """
    Apply tab filtering to a profile.

    The shape never changes: redacted profile fields are None and redacted
    lists are empty, so viewers always receive the same schema.
    """
    payload: Dict[str, Any] = {name: getattr(subject, name) for name in HEADER_FIELDS}

    profile_allowed = "Profile" in allowed_tabs
    for name in PROFILE_FIELDS:
        payload[name] = getattr(subject, name) if profile_allowed else None

    for name, tab in LIST_TABS.items():
        payload[name] = list(details.get(name, [])) if tab in allowed_tabs else []

    return payload


class ShareLinkService:
    """Lifecycle of share links: create, resolve, list and revoke."""

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> Optional[ShareLink]:
        result = await db.execute(select(ShareLink).where(ShareLink.token == token))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_link(
        db: AsyncSession,
        operator_id: int,
        subject_id: int,
        duration_minutes: Optional[int] = None,
        require_location: bool = False,
        allowed_tabs: Optional[Sequence[str]] = None
    ) -> Optional[ShareLink]:
        """
        Issue a share link for a profile the operator owns.

        The clock is not started here; it starts on the first successful
        resolve.

        Args:
            db: Database session
            operator_id: Caller's operator ID
            subject_id: Profile to share
            duration_minutes: Requested duration, clamped to the configured range
            require_location: Whether viewers must supply coordinates
            allowed_tabs: Disclosure categories to reveal (None = all)

        Returns:
            Created ShareLink, or None if the operator does not own the profile
        """
        subject = await SubjectService.get_owned_subject(db, subject_id, operator_id)
        if subject is None:
            return None

        subject_id = subject.id
        duration_seconds = settings.clamp_share_minutes(duration_minutes) * 60
        tabs = normalize_allowed_tabs(allowed_tabs)

        attempts = max(1, settings.SHARE_TOKEN_INSERT_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            link = ShareLink(
                subject_id=subject_id,
                token=generate_share_token(),
                duration_seconds=duration_seconds,
                started_at=None,
                is_active=True,
                views=0,
                require_location=bool(require_location),
                allowed_tabs=tabs,
                created_by=operator_id,
            )
            db.add(link)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                if attempt == attempts:
                    raise
                logger.warning(f"Share token collision, retrying (attempt {attempt}/{attempts})")
                continue

            await db.refresh(link)
            logger.info(
                f"Share link created: subject_id={subject_id}, token={mask_share_token(link.token)}, "
                f"duration_seconds={duration_seconds}, require_location={link.require_location}"
            )
            return link

        return None

    @staticmethod
    async def _activate(db: AsyncSession, link: ShareLink, now: datetime) -> datetime:
        """
        Start the clock once.

        The write only lands while started_at is NULL. A request that loses the
        race reads back the winner's timestamp instead of failing.
        """
        result = await db.execute(
            update(ShareLink)
            .where(ShareLink.id == link.id, ShareLink.started_at.is_(None))
            .values(started_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            logger.info(f"Share link activated: token={mask_share_token(link.token)}")
            return now

        result = await db.execute(select(ShareLink.started_at).where(ShareLink.id == link.id))
        return ensure_utc(result.scalar_one())

    @staticmethod
    async def _expire(db: AsyncSession, link: ShareLink) -> None:
        await db.execute(
            update(ShareLink)
            .where(ShareLink.id == link.id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(link)
        logger.info(f"Share link expired: token={mask_share_token(link.token)}")

    @staticmethod
    async def _count_view(db: AsyncSession, link: ShareLink) -> int:
        await db.execute(
            update(ShareLink)
            .where(ShareLink.id == link.id)
            .values(views=ShareLink.views + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(select(ShareLink.views).where(ShareLink.id == link.id))
        return result.scalar_one()

    @staticmethod
    async def resolve(
        db: AsyncSession,
        token: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> ShareResolution:
        """
        Resolve a share link for an unauthenticated viewer.

        Order of checks:
            1. unknown token -> NOT_FOUND
            2. link inactive -> INACTIVE
            3. window already elapsed -> EXPIRED (link flipped inactive)
            4. location required, no coordinates -> LOCATION_REQUIRED with a
               name/avatar teaser; no view counted, clock not started
            5. location required with coordinates -> sighting recorded
            6. clock started (compare-and-set), remaining computed; a
               non-positive remainder -> EXPIRED
            7. view counted, profile fetched and filtered by allowed tabs

        Every time computation uses the single clock reading taken on entry.

        Args:
            db: Database session
            token: Share link token
            lat: Viewer latitude, if supplied
            lng: Viewer longitude, if supplied
            now: Clock reading to use (defaults to the current UTC time)

        Returns:
            ShareResolution
        """
        now = ensure_utc(now) if now is not None else utcnow()

        link = await ShareLinkService.get_by_token(db, token)
        if link is None:
            return ShareResolution(outcome=ShareOutcome.NOT_FOUND)

        if not link.is_active:
            return ShareResolution(outcome=ShareOutcome.INACTIVE, link=link)

        started_at = ensure_utc(link.started_at)
        if started_at is not None and remaining_seconds(link.duration_seconds, started_at, now) <= 0:
            await ShareLinkService._expire(db, link)
            return ShareResolution(outcome=ShareOutcome.EXPIRED, link=link)

        has_location = lat is not None and lng is not None
        if link.require_location and not has_location:
            partial = await SubjectService.get_teaser(db, link.subject_id)
            return ShareResolution(outcome=ShareOutcome.LOCATION_REQUIRED, link=link, partial=partial)

        sighting_recorded = False
        if link.require_location:
            await SubjectService.record_sighting(db, link.subject_id, link.token, lat, lng)
            sighting_recorded = True

        started_at = await ShareLinkService._activate(db, link, now)
        remaining = remaining_seconds(link.duration_seconds, started_at, now)
        if remaining <= 0:
            await ShareLinkService._expire(db, link)
            return ShareResolution(outcome=ShareOutcome.EXPIRED, link=link, sighting_recorded=sighting_recorded)

        views = await ShareLinkService._count_view(db, link)

        subject = await SubjectService.get_subject(db, link.subject_id)
        if subject is None:
            await db.rollback()
            return ShareResolution(outcome=ShareOutcome.NOT_FOUND, link=link)

        allowed_tabs = effective_tabs(link)
        details = await SubjectService.get_detail_lists(db, subject.id)
        payload = filter_disclosure(subject, details, allowed_tabs)
        payload["meta"] = {
            "remaining_seconds": min(remaining, link.duration_seconds),
            "started_at": started_at,
            "expires_at": started_at + timedelta(seconds=link.duration_seconds),
            "views": views,
            "allowed_tabs": allowed_tabs,
        }

        await db.commit()
        await db.refresh(link)

        return ShareResolution(
            outcome=ShareOutcome.OK,
            link=link,
            payload=payload,
            sighting_recorded=sighting_recorded
        )

    @staticmethod
    def summarize(link: ShareLink, now: datetime) -> ShareLinkSummary:
        """Derive status and remaining time for one link without touching storage."""
        started_at = ensure_utc(link.started_at)
        expires_at = started_at + timedelta(seconds=link.duration_seconds) if started_at else None
        remaining = (
            remaining_seconds(link.duration_seconds, started_at, now)
            if started_at is not None else link.duration_seconds
        )

        if link.is_active and remaining > 0:
            status = ShareLinkStatus.ACTIVE if started_at else ShareLinkStatus.CREATED
        elif link.is_active or (started_at is not None and remaining <= 0):
            status = ShareLinkStatus.EXPIRED
        else:
            status = ShareLinkStatus.REVOKED

        is_active = status in (ShareLinkStatus.CREATED, ShareLinkStatus.ACTIVE)
        return ShareLinkSummary(
            token=link.token,
            status=status,
            is_active=is_active,
            views=link.views or 0,
            duration_seconds=link.duration_seconds,
            remaining_seconds=max(0, min(remaining, link.duration_seconds)) if is_active else 0,
            started_at=started_at,
            expires_at=expires_at,
            require_location=bool(link.require_location),
            allowed_tabs=link.allowed_tabs,
            created_at=ensure_utc(link.created_at),
        )

    @staticmethod
    async def list_links(
        db: AsyncSession,
        operator_id: int,
        subject_id: int,
        now: Optional[datetime] = None
    ) -> List[ShareLinkSummary]:
        """
        Links of an owned profile, newest first.

        Links found past their window are flipped inactive so listings never
        show a stale link as active. A profile the operator does not own yields
        an empty list.
        """
        now = ensure_utc(now) if now is not None else utcnow()

        subject = await SubjectService.get_owned_subject(db, subject_id, operator_id)
        if subject is None:
            return []

        result = await db.execute(
            select(ShareLink)
            .where(ShareLink.subject_id == subject.id)
            .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
        )
        links = list(result.scalars().all())

        summaries = []
        expired_ids = []
        for link in links:
            summary = ShareLinkService.summarize(link, now)
            if link.is_active and summary.status == ShareLinkStatus.EXPIRED:
                expired_ids.append(link.id)
            summaries.append(summary)

        if expired_ids:
            await db.execute(
                update(ShareLink)
                .where(ShareLink.id.in_(expired_ids), ShareLink.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            for link in links:
                if link.id in expired_ids:
                    await db.refresh(link)
            logger.info(f"Expired {len(expired_ids)} share link(s) while listing subject_id={subject.id}")

        return summaries

    @staticmethod
    async def revoke(db: AsyncSession, operator_id: int, token: str) -> bool:
        """
        Deactivate a link on a profile the operator owns.

        The ownership check and the write are one conditional UPDATE. Matched
        rows are counted, so revoking an already revoked link still succeeds.

        Returns:
            True if a link matched, False otherwise
        """
        result = await db.execute(
            update(ShareLink)
            .where(
                ShareLink.token == token,
                ShareLink.subject_id.in_(SubjectService.owned_subject_ids(operator_id))
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()

        if result.rowcount == 0:
            return False

        logger.info(f"Share link revoked: token={mask_share_token(token)}, operator_id={operator_id}")
        return True
