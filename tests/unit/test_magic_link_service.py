from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import seed_branch, seed_link
from washboard.core.errors import Forbidden, InvalidBranch, LinkAlreadyUsed, MissingFields
from washboard.core.security import Identity
from washboard.db.models import MagicLink
from washboard.services.magic_link_service import (
    ALREADY_USED,
    EXPIRED,
    NOT_FOUND,
    as_utc,
    build_booking_url,
    consume_magic_link,
    issue_magic_link,
    list_magic_links,
    validate_magic_link,
)
from washboard.services.token_generator import generate_secure_token


def test_issue_sets_fixed_expiry_and_normalizes_branch(db_session, identity):
    now = datetime(2026, 10, 1, 9, 0, tzinfo=UTC)

    link = issue_magic_link(db_session, identity, " main ", customer_name="  Ana ", now=now)

    assert link.id is not None
    assert link.branch_code == "MAIN"
    assert len(link.token) == 128
    assert link.customer_name == "Ana"
    assert link.customer_messenger is None
    assert as_utc(link.expires_at) == now + timedelta(hours=24)
    assert link.used_at is None
    assert link.created_by == identity.user_id


def test_issue_rejects_other_branch_missing_code_and_unknown_branch(db_session, identity):
    seed_branch(db_session, code="NORTH")

    with pytest.raises(Forbidden):
        issue_magic_link(db_session, identity, "NORTH")
    with pytest.raises(MissingFields):
        issue_magic_link(db_session, identity, "   ")

    identity_without_branch = Identity(user_id=identity.user_id, branch_code="GHOST", role=identity.role)
    with pytest.raises(InvalidBranch):
        issue_magic_link(db_session, identity_without_branch, "GHOST")


def test_validate_reports_each_state(db_session, receptionist):
    active = seed_link(db_session, receptionist)
    expired = seed_link(db_session, receptionist, expires_in=timedelta(hours=-1))
    used = seed_link(db_session, receptionist, used=True)

    ok = validate_magic_link(db_session, active.token)
    assert ok.valid is True
    assert ok.link.id == active.id

    assert validate_magic_link(db_session, generate_secure_token()).reason == NOT_FOUND
    assert validate_magic_link(db_session, expired.token).reason == EXPIRED
    assert validate_magic_link(db_session, used.token).reason == ALREADY_USED


def test_expired_unused_link_reports_expired_not_not_found(db_session, receptionist):
    link = seed_link(db_session, receptionist, expires_in=timedelta(seconds=-1))

    result = validate_magic_link(db_session, link.token)

    assert result.valid is False
    assert result.reason == EXPIRED


def test_used_check_runs_before_expiry_check(db_session, receptionist):
    link = seed_link(db_session, receptionist, expires_in=timedelta(hours=-3), used=True)

    assert validate_magic_link(db_session, link.token).reason == ALREADY_USED


def test_link_expires_exactly_at_expiry_timestamp(db_session, receptionist):
    link = seed_link(db_session, receptionist)
    expires_at = as_utc(link.expires_at)

    assert validate_magic_link(db_session, link.token, now=expires_at - timedelta(seconds=1)).valid is True
    assert validate_magic_link(db_session, link.token, now=expires_at).reason == EXPIRED


def test_validate_fails_closed_when_storage_breaks(db_session, receptionist, monkeypatch):
    link = seed_link(db_session, receptionist)

    def broken_scalar(*args, **kwargs):
        raise OperationalError("SELECT magic_links", {}, Exception("connection reset"))

    monkeypatch.setattr(db_session, "scalar", broken_scalar)

    result = validate_magic_link(db_session, link.token)

    assert result.valid is False
    assert result.reason == NOT_FOUND


def test_validate_does_not_mutate_link(db_session, receptionist):
    link = seed_link(db_session, receptionist)

    validate_magic_link(db_session, link.token)
    db_session.expire_all()

    assert db_session.get(MagicLink, link.id).used_at is None


def test_consume_never_repoints_a_used_link(db_session, receptionist):
    link = seed_link(db_session, receptionist)

    consume_magic_link(db_session, link.token, booking_id=41)
    db_session.commit()
    with pytest.raises(LinkAlreadyUsed):
        consume_magic_link(db_session, link.token, booking_id=42)
    db_session.rollback()

    db_session.expire_all()
    stored = db_session.get(MagicLink, link.id)
    assert stored.booking_id == 41
    assert stored.used_at is not None


def test_list_filters_by_state_newest_first(db_session, receptionist):
    first = seed_link(db_session, receptionist)
    second = seed_link(db_session, receptionist)
    seed_link(db_session, receptionist, expires_in=timedelta(hours=-2))
    seed_link(db_session, receptionist, used=True)

    active = list_magic_links(db_session, "MAIN", status_filter="active")
    everything = list_magic_links(db_session, "MAIN", status_filter="all")

    assert [link.id for link, _ in active] == [second.id, first.id]
    assert len(everything) == 4
    assert len(list_magic_links(db_session, "MAIN", status_filter="expired")) == 1
    assert len(list_magic_links(db_session, "MAIN", status_filter="used")) == 1
    assert list_magic_links(db_session, "MAIN", status_filter="all", limit=2)[0][0].id == everything[0][0].id


def test_booking_url_uses_branch_and_token(db_session, receptionist):
    link = seed_link(db_session, receptionist)

    url = build_booking_url("https://wash.example.com/", link)

    assert url == f"https://wash.example.com/book/MAIN/{link.token}"
