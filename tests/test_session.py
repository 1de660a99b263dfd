"""Tests for session state."""

import dataclasses

import pytest

from smartqq_client.exceptions import PreconditionError
from smartqq_client.models import UserStatus
from smartqq_client.session import INITIAL_MESSAGE_ID, Credentials, SessionState


def test_fresh_session_is_logged_out():
    session = SessionState()
    assert not session.is_logged_in
    assert session.credentials is None
    assert session.status is None
    with pytest.raises(PreconditionError):
        session.require_credentials()


def test_establish(credentials):
    session = SessionState()
    session.establish(credentials, UserStatus.ONLINE)

    assert session.is_logged_in
    assert session.require_credentials() is credentials
    assert session.status == UserStatus.ONLINE


def test_status_setter_coerces(credentials):
    session = SessionState()
    session.establish(credentials, "online")
    assert session.status is UserStatus.ONLINE

    session.status = "busy"
    assert session.status is UserStatus.BUSY

    with pytest.raises(ValueError):
        session.status = "sleeping"


def test_credentials_are_frozen(credentials):
    with pytest.raises(dataclasses.FrozenInstanceError):
        credentials.uin = 1


def test_message_ids_increase():
    session = SessionState()
    ids = [session.next_message_id() for _ in range(5)]
    assert ids == list(range(INITIAL_MESSAGE_ID, INITIAL_MESSAGE_ID + 5))
    assert INITIAL_MESSAGE_ID == 43690001


def test_clear_keeps_message_counter(credentials):
    session = SessionState()
    session.establish(credentials, UserStatus.ONLINE)
    first = session.next_message_id()

    session.clear()

    assert not session.is_logged_in
    assert session.next_message_id() == first + 1


def test_credentials_equality():
    a = Credentials(pt_token="p", vf_token="v", uin=1, session_id="s")
    b = Credentials(pt_token="p", vf_token="v", uin=1, session_id="s")
    assert a == b
