"""Tests for migration helpers and the ORM schema constraints."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from apptime_api.core.migrations import (
    check_migrations_current,
    get_alembic_config,
    get_head_revision,
)
from apptime_api.models import AccessVerificationSession, User


class TestMigrationHelpers:
    """Tests for the Alembic wrappers."""

    def test_config_points_at_migrations_directory(self):
        config = get_alembic_config()

        assert config.get_main_option("script_location").endswith("migrations")

    def test_head_is_access_sessions_revision(self):
        assert get_head_revision() == "002_access_sessions"

    async def test_schema_built_from_metadata_is_not_current(self):
        # Test tables come from create_all, so there is no alembic_version row
        assert await check_migrations_current() is False


class TestSchemaConstraints:
    """Database-level guarantees behind the session service."""

    async def test_self_session_rejected_by_check_constraint(
        self, db_session, make_user
    ):
        alice = await make_user("alice")
        now = datetime.now(UTC)
        db_session.add(
            AccessVerificationSession(
                requester_id=alice.id,
                target_id=alice.id,
                target_username=alice.username,
                verified_at=now,
                expires_at=now + timedelta(hours=1),
                created_at=now,
            )
        )

        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_duplicate_username_rejected(self, db_session, make_user):
        alice = await make_user("alice")
        db_session.add(
            User(
                username=alice.username,
                email=f"other_{alice.email}",
                hashed_password="x",
            )
        )

        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_pair_has_no_unique_constraint(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        now = datetime.now(UTC)
        for offset in (2, 1):
            verified_at = now - timedelta(hours=offset)
            db_session.add(
                AccessVerificationSession(
                    requester_id=alice.id,
                    target_id=bob.id,
                    target_username=bob.username,
                    verified_at=verified_at,
                    expires_at=verified_at + timedelta(hours=1),
                    created_at=verified_at,
                )
            )

        await db_session.commit()

    def test_user_repr(self):
        assert repr(User(username="carol")) == "<User carol>"
