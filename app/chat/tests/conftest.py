"""
Test configuration and fixtures for chat tests.

This module provides:
- Fresh process-wide registries (presence, rooms, dispatcher, cipher) per test
- Users and conversations in the shapes most tests need
- API clients authenticated with JWTs

Usage:
    Request `group` together with `alice_client` to get a three-person
    group and an API client authenticated as its admin.
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.dispatcher import get_event_dispatcher
from chat.encryption import get_message_cipher
from chat.presence import get_presence_registry
from chat.rooms import get_room_router
from chat.services import ConversationService


@pytest.fixture(autouse=True)
def fresh_realtime_state():
    """Every test starts with empty presence and room state."""
    for provider in (
        get_presence_registry,
        get_room_router,
        get_event_dispatcher,
        get_message_cipher,
    ):
        provider.cache_clear()
    yield
    for provider in (get_presence_registry, get_room_router, get_event_dispatcher):
        provider.cache_clear()


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(full_name="Alice Archer")


@pytest.fixture
def bob(db):
    return UserFactory(full_name="Bob Baker")


@pytest.fixture
def carol(db):
    return UserFactory(full_name="Carol Clark")


@pytest.fixture
def outsider(db):
    """A user who belongs to none of the fixture conversations."""
    return UserFactory(full_name="Oscar Outsider")


# =============================================================================
# Conversations
# =============================================================================


@pytest.fixture
def direct(alice, bob):
    """Direct conversation between alice and bob."""
    return ConversationService.create_direct(alice, bob.pk).data


@pytest.fixture
def group(alice, bob, carol):
    """Group created by alice (admin) with bob and carol as members."""
    return ConversationService.create_group(alice, [bob.pk, carol.pk], title="Team").data


# =============================================================================
# API clients
# =============================================================================


def client_for(user) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def alice_client(alice):
    return client_for(alice)


@pytest.fixture
def bob_client(bob):
    return client_for(bob)


@pytest.fixture
def carol_client(carol):
    return client_for(carol)


@pytest.fixture
def outsider_client(outsider):
    return client_for(outsider)
