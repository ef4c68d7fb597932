import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, case, or_, inspect
from sqlalchemy.orm import aliased
from dossier.models.subject import (
    Subject,
    SubjectInteraction,
    SubjectLocation,
    SubjectMedia,
    SubjectIntel,
    SubjectSkill,
    SubjectRelationship,
)
from dossier.models.share_link import ShareLink
from dossier.core.logging_utils import mask_share_token

logger = logging.getLogger(__name__)

SIGHTING_NAME = "Anonymous Viewer"
SIGHTING_TYPE = "Viewer Sighting"


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Column values of an ORM row as a plain dict."""
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


class SubjectService:
    """Storage-facing helpers for profiles and their detail rows."""

    @staticmethod
    def owned_subject_ids(operator_id: int):
        """Subquery of the non-archived profile ids owned by an operator."""
        return select(Subject.id).where(
            Subject.operator_id == operator_id,
            Subject.is_archived.is_(False)
        )

    @staticmethod
    async def get_owned_subject(
        db: AsyncSession,
        subject_id: int,
        operator_id: int
    ) -> Optional[Subject]:
        """
        Get a profile only if the operator owns it and it is not archived.

        Args:
            db: Database session
            subject_id: Profile ID
            operator_id: Caller's operator ID

        Returns:
            Subject record or None
        """
        result = await db.execute(
            select(Subject).where(
                Subject.id == subject_id,
                Subject.operator_id == operator_id,
                Subject.is_archived.is_(False)
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_subject(db: AsyncSession, subject_id: int) -> Optional[Subject]:
        result = await db.execute(select(Subject).where(Subject.id == subject_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_subjects(db: AsyncSession, operator_id: int) -> List[Subject]:
        result = await db.execute(
            select(Subject)
            .where(Subject.operator_id == operator_id, Subject.is_archived.is_(False))
            .order_by(Subject.created_at.desc(), Subject.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_subject(
        db: AsyncSession,
        operator_id: int,
        **fields: Any
    ) -> Subject:
        subject = Subject(operator_id=operator_id, **fields)
        db.add(subject)
        await db.commit()
        await db.refresh(subject)
        logger.info(f"Subject created: subject_id={subject.id}, operator_id={operator_id}")
        return subject

    @staticmethod
    async def archive_subject(
        db: AsyncSession,
        subject_id: int,
        operator_id: int
    ) -> bool:
        """
        Archive an owned profile and deactivate its share links.

        Both updates commit together, so no link outlives its profile.
        Returns False when nothing matched.
        """
        result = await db.execute(
            update(Subject)
            .where(
                Subject.id == subject_id,
                Subject.operator_id == operator_id,
                Subject.is_archived.is_(False)
            )
            .values(is_archived=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False

        links = await db.execute(
            update(ShareLink)
            .where(ShareLink.subject_id == subject_id, ShareLink.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()
        logger.info(f"Profile archived: subject_id={subject_id}, share_links_deactivated={links.rowcount}")
        return True

    @staticmethod
    async def add_location(
        db: AsyncSession,
        subject_id: int,
        name: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        address: Optional[str] = None,
        type: str = "pin",
        notes: Optional[str] = None,
        commit: bool = True
    ) -> SubjectLocation:
        location = SubjectLocation(
            subject_id=subject_id,
            name=name,
            address=address,
            lat=lat,
            lng=lng,
            type=type,
            notes=notes
        )
        db.add(location)
        if commit:
            await db.commit()
            await db.refresh(location)
        else:
            await db.flush()
        return location

    @staticmethod
    async def record_sighting(
        db: AsyncSession,
        subject_id: int,
        share_token: str,
        lat: float,
        lng: float
    ) -> SubjectLocation:
        """
        Record the coordinates a viewer supplied to unlock a shared profile.

        The row is flushed, not committed; the caller commits with the rest of
        the access.
        """
        location = await SubjectService.add_location(
            db,
            subject_id=subject_id,
            name=SIGHTING_NAME,
            lat=lat,
            lng=lng,
            type=SIGHTING_TYPE,
            notes=f"Accessed via Secure Link: {mask_share_token(share_token)}",
            commit=False
        )
        logger.info(f"Viewer sighting recorded: subject_id={subject_id}, location_id={location.id}")
        return location

    @staticmethod
    async def get_teaser(db: AsyncSession, subject_id: int) -> Dict[str, Any]:
        """Name and avatar only, shown while a share link waits for location."""
        result = await db.execute(
            select(Subject.full_name, Subject.avatar_path).where(Subject.id == subject_id)
        )
        row = result.first()
        if row is None:
            return {"full_name": None, "avatar_path": None}
        return {"full_name": row.full_name, "avatar_path": row.avatar_path}

    @staticmethod
    async def get_relationships(db: AsyncSession, subject_id: int) -> List[Dict[str, Any]]:
        """
        Relationships touching a profile, from either side.

        Each entry carries the other party's name, avatar and role, falling back
        to the custom_* fields for contacts that are not profiles.
        """
        other = aliased(Subject)
        other_id = case(
            (SubjectRelationship.subject_a_id == subject_id, SubjectRelationship.subject_b_id),
            else_=SubjectRelationship.subject_a_id
        )
        result = await db.execute(
            select(SubjectRelationship, other.full_name, other.avatar_path, other.occupation)
            .outerjoin(other, other.id == other_id)
            .where(or_(
                SubjectRelationship.subject_a_id == subject_id,
                SubjectRelationship.subject_b_id == subject_id
            ))
            .order_by(SubjectRelationship.id)
        )

        relationships = []
        for relationship, full_name, avatar_path, occupation in result.all():
            entry = row_to_dict(relationship)
            entry["target_name"] = full_name or relationship.custom_name
            entry["target_avatar"] = avatar_path or relationship.custom_avatar
            entry["target_role"] = occupation
            relationships.append(entry)
        return relationships

    @staticmethod
    async def get_detail_lists(db: AsyncSession, subject_id: int) -> Dict[str, List[Dict[str, Any]]]:
        """Every detail list of a profile, keyed by payload field name."""

        async def fetch(model, *order_by) -> List[Dict[str, Any]]:
            query = select(model).where(model.subject_id == subject_id)
            query = query.order_by(*(order_by or (model.id,)))
            result = await db.execute(query)
            return [row_to_dict(row) for row in result.scalars().all()]

        return {
            "interactions": await fetch(SubjectInteraction, SubjectInteraction.date.desc(), SubjectInteraction.id.desc()),
            "locations": await fetch(SubjectLocation),
            "media": await fetch(SubjectMedia),
            "intel": await fetch(SubjectIntel),
            "skills": await fetch(SubjectSkill),
            "relationships": await SubjectService.get_relationships(db, subject_id),
        }
