"""Shared fixtures for engine tests."""
import math

import pytest

from eplq.client.admin import PoiAdmin
from eplq.client.crypto import CryptoCodec
from eplq.client.search import ProximityQueryEngine
from eplq.server.store import InMemoryDocumentStore
from eplq.shared.audit import AuditEmitter, InMemoryAuditSink
from eplq.shared.geo import EARTH_RADIUS_KM
from eplq.shared.protocol import Identity

LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)


def point_north(lat: float, lon: float, distance_km: float):
    """Point exactly `distance_km` north of (lat, lon) along the meridian."""
    return lat + math.degrees(distance_km / EARTH_RADIUS_KM), lon


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def codec(audit_sink: InMemoryAuditSink) -> CryptoCodec:
    return CryptoCodec.from_passphrase("test-passphrase", audit=AuditEmitter(audit_sink))


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def engine(codec, store, audit_sink) -> ProximityQueryEngine:
    return ProximityQueryEngine(codec, store, audit=AuditEmitter(audit_sink))


@pytest.fixture
def admin(codec, store, audit_sink) -> PoiAdmin:
    return PoiAdmin(codec, store, audit=AuditEmitter(audit_sink))


@pytest.fixture
def owner() -> Identity:
    return Identity(user_id="u-owner", email="owner@example.com")
