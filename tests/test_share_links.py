"""
Tests for the share link lifecycle: creation, resolution, listing and revocation.
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dossier.models.share_link import ShareLink
from dossier.models.subject import SubjectIntel, SubjectLocation, SubjectSkill, SubjectRelationship
from dossier.services.share_link_service import (
    DISCLOSURE_TABS,
    ShareLinkService,
    ShareLinkStatus,
    ShareOutcome,
    ensure_utc,
    filter_disclosure,
    remaining_seconds,
)
from dossier.services.subject_service import SubjectService, SIGHTING_NAME, SIGHTING_TYPE

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


async def add_details(db, subject_id):
    db.add_all([
        SubjectIntel(subject_id=subject_id, category="Finance", label="Offshore account", value="Cayman"),
        SubjectLocation(subject_id=subject_id, name="Safehouse", lat=59.93, lng=30.36),
        SubjectSkill(subject_id=subject_id, skill_name="Lockpicking", score=80),
        SubjectRelationship(subject_a_id=subject_id, relationship_type="Handler", custom_name="Unknown contact"),
    ])
    await db.commit()


class TestRemainingSeconds:
    """Tests for the window arithmetic."""

    def test_full_window_at_start(self):
        assert remaining_seconds(600, T0, T0) == 600

    def test_floors_partial_seconds(self):
        """Remaining time is floored to whole seconds."""
        assert remaining_seconds(600, T0, T0 + timedelta(seconds=10.5)) == 589

    def test_clock_skew_never_extends_window(self):
        """A clock reading before the start counts as zero elapsed."""
        assert remaining_seconds(600, T0, T0 - timedelta(minutes=5)) == 600

    def test_non_positive_after_window(self):
        assert remaining_seconds(600, T0, T0 + timedelta(seconds=600)) == 0
        assert remaining_seconds(600, T0, T0 + timedelta(seconds=700)) == -100

    def test_ensure_utc_handles_naive_values(self):
        """Naive datetimes read back from storage are treated as UTC."""
        assert ensure_utc(datetime(2026, 3, 1, 12, 0, 0)) == T0
        assert ensure_utc(None) is None


class TestShareLinkCreation:
    """Tests for ShareLinkService.create_link."""

    @pytest.mark.asyncio
    async def test_create_link_defaults(self, db_session, master, subject):
        """A new link is active, unstarted, unviewed and lasts the default duration."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        assert link is not None
        assert len(link.token) == 32
        assert link.is_active is True
        assert link.started_at is None
        assert link.views == 0
        assert link.duration_seconds == 60 * 60
        assert link.require_location is False
        assert link.allowed_tabs is None
        assert link.created_by == master.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes,expected_seconds", [
        (0, 60),
        (-15, 60),
        (1, 60),
        (45, 2700),
        (10080, 604800),
        (99999, 604800),
    ])
    async def test_duration_is_clamped(self, db_session, master, subject, minutes, expected_seconds):
        """Durations are clamped to one minute through one week."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=minutes)

        assert link.duration_seconds == expected_seconds

    @pytest.mark.asyncio
    async def test_allowed_tabs_normalized(self, db_session, master, subject):
        """Unknown tabs are dropped and duplicates collapse."""
        link = await ShareLinkService.create_link(
            db_session, master.id, subject.id, allowed_tabs=["Intel", "Bogus", "Map", "Intel"]
        )

        assert link.allowed_tabs == ["Intel", "Map"]

    @pytest.mark.asyncio
    async def test_create_link_requires_ownership(self, db_session, analyst, subject):
        """Operators cannot share profiles they do not own."""
        link = await ShareLinkService.create_link(db_session, analyst.id, subject.id)

        assert link is None

    @pytest.mark.asyncio
    async def test_create_link_for_archived_profile(self, db_session, master, subject):
        """Archived profiles cannot be shared."""
        await SubjectService.archive_subject(db_session, subject.id, master.id)

        assert await ShareLinkService.create_link(db_session, master.id, subject.id) is None

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, db_session, master, subject):
        links = [await ShareLinkService.create_link(db_session, master.id, subject.id) for _ in range(5)]

        assert len({link.token for link in links}) == 5


class TestShareLinkResolution:
    """Tests for ShareLinkService.resolve."""

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session):
        resolution = await ShareLinkService.resolve(db_session, "0" * 32, now=T0)

        assert resolution.outcome == ShareOutcome.NOT_FOUND
        assert resolution.link is None

    @pytest.mark.asyncio
    async def test_first_access_starts_clock(self, db_session, master, subject):
        """The countdown starts on the first successful resolve."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=10)

        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0)

        assert resolution.ok
        assert ensure_utc(resolution.link.started_at) == T0
        assert resolution.payload["meta"]["remaining_seconds"] == 600
        assert resolution.payload["meta"]["expires_at"] == T0 + timedelta(minutes=10)
        assert resolution.payload["meta"]["views"] == 1

    @pytest.mark.asyncio
    async def test_start_time_is_never_overwritten(self, db_session, master, subject):
        """Later resolves keep the first start time and count views."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=10)

        await ShareLinkService.resolve(db_session, link.token, now=T0)
        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0 + timedelta(seconds=90))

        assert resolution.ok
        assert ensure_utc(resolution.link.started_at) == T0
        assert resolution.payload["meta"]["remaining_seconds"] == 510
        assert resolution.payload["meta"]["views"] == 2
        assert resolution.link.views == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_access_keeps_winner_start_time(self, db_session, master, subject):
        """A resolve holding a stale unstarted link adopts the start time another request wrote."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=10)
        assert link.started_at is None

        async with AsyncSession(db_session.bind) as other:
            await other.execute(update(ShareLink).where(ShareLink.id == link.id).values(started_at=T0))
            await other.commit()

        assert link.started_at is None
        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0 + timedelta(seconds=120))

        assert resolution.ok
        assert resolution.payload["meta"]["started_at"] == T0
        assert resolution.payload["meta"]["remaining_seconds"] == 480
        assert ensure_utc(resolution.link.started_at) == T0

    @pytest.mark.asyncio
    async def test_activate_returns_existing_start_time(self, db_session, master, subject):
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        async with AsyncSession(db_session.bind) as other:
            await other.execute(update(ShareLink).where(ShareLink.id == link.id).values(started_at=T0))
            await other.commit()

        started_at = await ShareLinkService._activate(db_session, link, T0 + timedelta(minutes=5))

        assert started_at == T0

    @pytest.mark.asyncio
    async def test_remaining_never_exceeds_duration(self, db_session, master, subject):
        """A skewed clock reading before the start still reports at most the full duration."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=5)

        await ShareLinkService.resolve(db_session, link.token, now=T0)
        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0 - timedelta(minutes=2))

        assert resolution.payload["meta"]["remaining_seconds"] == 300

    @pytest.mark.asyncio
    async def test_expired_window_deactivates_link(self, db_session, master, subject):
        """Resolving past the window expires the link; it stays gone afterwards."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=1)
        await ShareLinkService.resolve(db_session, link.token, now=T0)

        expired = await ShareLinkService.resolve(db_session, link.token, now=T0 + timedelta(seconds=60))
        assert expired.outcome == ShareOutcome.EXPIRED
        assert expired.link.is_active is False
        assert expired.link.views == 1

        again = await ShareLinkService.resolve(db_session, link.token, now=T0 + timedelta(seconds=61))
        assert again.outcome == ShareOutcome.INACTIVE

    @pytest.mark.asyncio
    async def test_revoked_link_is_inactive(self, db_session, master, subject):
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)
        await ShareLinkService.revoke(db_session, master.id, link.token)

        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0)

        assert resolution.outcome == ShareOutcome.INACTIVE

    @pytest.mark.asyncio
    async def test_location_gate_without_coordinates(self, db_session, master, subject):
        """Without coordinates only the teaser is returned; no view, no clock."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, require_location=True)

        resolution = await ShareLinkService.resolve(db_session, link.token, lat=59.9, now=T0)

        assert resolution.outcome == ShareOutcome.LOCATION_REQUIRED
        assert resolution.partial == {"full_name": "Viktor Petrov", "avatar_path": "/avatars/viktor.png"}
        await db_session.refresh(link)
        assert link.started_at is None
        assert link.views == 0

    @pytest.mark.asyncio
    async def test_location_gate_with_coordinates_records_sighting(self, db_session, master, subject):
        """Supplying coordinates unlocks the profile and pins a sighting."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, require_location=True)

        resolution = await ShareLinkService.resolve(db_session, link.token, lat=48.8566, lng=2.3522, now=T0)

        assert resolution.ok
        assert resolution.sighting_recorded is True
        sightings = [loc for loc in resolution.payload["locations"] if loc["name"] == SIGHTING_NAME]
        assert len(sightings) == 1
        assert sightings[0]["type"] == SIGHTING_TYPE
        assert sightings[0]["lat"] == pytest.approx(48.8566)
        assert sightings[0]["notes"] == f"Accessed via Secure Link: {link.token[:8]}..."

    @pytest.mark.asyncio
    async def test_coordinates_ignored_without_location_gate(self, db_session, master, subject):
        """Links that do not require location never record sightings."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        resolution = await ShareLinkService.resolve(db_session, link.token, lat=1.0, lng=2.0, now=T0)

        assert resolution.ok
        assert resolution.sighting_recorded is False
        result = await db_session.execute(select(SubjectLocation).where(SubjectLocation.subject_id == subject.id))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_all_tabs_disclosed_by_default(self, db_session, master, subject):
        """A link without allowed tabs discloses everything."""
        await add_details(db_session, subject.id)
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        payload = (await ShareLinkService.resolve(db_session, link.token, now=T0)).payload

        assert payload["dob"] == "1980-02-11"
        assert payload["identifying_marks"] == "Scar on left hand"
        assert len(payload["intel"]) == 1
        assert len(payload["locations"]) == 1
        assert len(payload["skills"]) == 1
        assert payload["relationships"][0]["target_name"] == "Unknown contact"
        assert payload["meta"]["allowed_tabs"] == DISCLOSURE_TABS

    @pytest.mark.asyncio
    async def test_allowed_tabs_filter_payload(self, db_session, master, subject):
        """Disallowed tabs come back as null fields and empty lists."""
        await add_details(db_session, subject.id)
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, allowed_tabs=["Intel"])

        payload = (await ShareLinkService.resolve(db_session, link.token, now=T0)).payload

        assert payload["full_name"] == "Viktor Petrov"
        assert payload["threat_level"] == "High"
        assert payload["dob"] is None
        assert payload["blood_type"] is None
        assert len(payload["intel"]) == 1
        assert payload["locations"] == []
        assert payload["skills"] == []
        assert payload["relationships"] == []
        assert payload["meta"]["allowed_tabs"] == ["Intel"]

    @pytest.mark.asyncio
    async def test_empty_allowed_tabs_shows_header_only(self, db_session, master, subject):
        await add_details(db_session, subject.id)
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, allowed_tabs=[])

        payload = (await ShareLinkService.resolve(db_session, link.token, now=T0)).payload

        assert payload["alias"] == "The Ghost"
        assert payload["age"] is None
        assert all(payload[name] == [] for name in ("interactions", "locations", "media", "intel", "skills", "relationships"))


class TestFilterDisclosure:
    """Tests for the disclosure filter on its own."""

    def test_shape_is_stable(self):
        """Every field is present whatever the allowed tabs."""
        class Profile:
            id = 1
            full_name = "A"
            alias = occupation = nationality = avatar_path = None
            threat_level = "Low"
            status = "Active"
            dob = "2000-01-01"
            age = 26
            height = weight = blood_type = modus_operandi = identifying_marks = None

        full = filter_disclosure(Profile(), {}, DISCLOSURE_TABS)
        none = filter_disclosure(Profile(), {}, [])

        assert set(full) == set(none)
        assert full["age"] == 26
        assert none["age"] is None


class TestShareLinkListing:
    """Tests for ShareLinkService.list_links and summarize."""

    @pytest.mark.asyncio
    async def test_list_newest_first_with_status(self, db_session, master, subject):
        first = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=10)
        second = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=10)
        await ShareLinkService.resolve(db_session, first.token, now=T0)

        summaries = await ShareLinkService.list_links(db_session, master.id, subject.id, now=T0 + timedelta(seconds=30))

        assert [s.token for s in summaries] == [second.token, first.token]
        assert summaries[0].status == ShareLinkStatus.CREATED
        assert summaries[0].remaining_seconds == 600
        assert summaries[0].expires_at is None
        assert summaries[1].status == ShareLinkStatus.ACTIVE
        assert summaries[1].remaining_seconds == 570
        assert summaries[1].views == 1

    @pytest.mark.asyncio
    async def test_listing_expires_stale_links(self, db_session, master, subject):
        """Links found past their window are reported expired and flipped inactive."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id, duration_minutes=1)
        await ShareLinkService.resolve(db_session, link.token, now=T0)

        summaries = await ShareLinkService.list_links(db_session, master.id, subject.id, now=T0 + timedelta(minutes=5))

        assert summaries[0].status == ShareLinkStatus.EXPIRED
        assert summaries[0].is_active is False
        assert summaries[0].remaining_seconds == 0
        stored = await ShareLinkService.get_by_token(db_session, link.token)
        assert stored.is_active is False

    @pytest.mark.asyncio
    async def test_revoked_status(self, db_session, master, subject):
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)
        await ShareLinkService.revoke(db_session, master.id, link.token)

        summaries = await ShareLinkService.list_links(db_session, master.id, subject.id, now=T0)

        assert summaries[0].status == ShareLinkStatus.REVOKED
        assert summaries[0].remaining_seconds == 0

    @pytest.mark.asyncio
    async def test_list_for_foreign_profile_is_empty(self, db_session, master, analyst, subject):
        await ShareLinkService.create_link(db_session, master.id, subject.id)

        assert await ShareLinkService.list_links(db_session, analyst.id, subject.id, now=T0) == []


class TestShareLinkRevocation:
    """Tests for ShareLinkService.revoke."""

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, db_session, master, subject):
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        assert await ShareLinkService.revoke(db_session, master.id, link.token) is True
        assert await ShareLinkService.revoke(db_session, master.id, link.token) is True

        result = await db_session.execute(select(ShareLink.is_active).where(ShareLink.token == link.token))
        assert result.scalar_one() is False

    @pytest.mark.asyncio
    async def test_revoke_requires_ownership(self, db_session, master, analyst, subject):
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)

        assert await ShareLinkService.revoke(db_session, analyst.id, link.token) is False
        stored = await ShareLinkService.get_by_token(db_session, link.token)
        assert stored.is_active is True

    @pytest.mark.asyncio
    async def test_revoke_unknown_token(self, db_session, master):
        assert await ShareLinkService.revoke(db_session, master.id, "f" * 32) is False

    @pytest.mark.asyncio
    async def test_archiving_profile_deactivates_its_links(self, db_session, master, subject):
        """Archiving closes every link, so none stays reachable without an owner able to revoke it."""
        link = await ShareLinkService.create_link(db_session, master.id, subject.id)
        await SubjectService.archive_subject(db_session, subject.id, master.id)

        resolution = await ShareLinkService.resolve(db_session, link.token, now=T0)
        assert resolution.outcome == ShareOutcome.INACTIVE
        assert resolution.payload is None

        result = await db_session.execute(select(ShareLink.is_active).where(ShareLink.token == link.token))
        assert result.scalar_one() is False
        # Already closed; the archived profile is no longer owned
        assert await ShareLinkService.revoke(db_session, master.id, link.token) is False
