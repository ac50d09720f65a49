"""pytest configuration and fixtures."""

import os
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock

# Settings are read at import time; keep tests off Redis and the local database file
os.environ["REDIS_URL"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from discovery.models.profile import Location, Profile  # noqa: E402
from discovery.services.block_service import BlockList  # noqa: E402
from discovery.services.discovery_service import DiscoveryService  # noqa: E402
from discovery.services.ledger_service import InterestLedger  # noqa: E402
from discovery.services.match_service import MatchMaterializer  # noqa: E402
from discovery.services.notification_service import MatchEventBus, MatchNotifier  # noqa: E402
from discovery.services.quota_service import QuotaTracker  # noqa: E402
from discovery.services.tier_service import PlanTierResolver  # noqa: E402
from discovery.utils.cache import RedisClient  # noqa: E402
from discovery.utils.database import Base, create_engine_for_url  # noqa: E402
from discovery.utils.errors import NotFoundError  # noqa: E402

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)

# Central Berlin
BERLIN = (52.52, 13.405)


def make_profile(
    user_id: str,
    age: Optional[int] = 30,
    gender: str = "female",
    interested_in: Sequence[str] = ("male", "female"),
    interests: Sequence[str] = (),
    location: Optional[Tuple[float, float]] = BERLIN,
    rating: int = 0,
    **kwargs,
) -> Profile:
    """Build a profile aged `age` on TODAY."""
    return Profile(
        id=user_id,
        first_name=kwargs.pop("first_name", user_id.capitalize()),
        birth_date=TODAY.replace(year=TODAY.year - age) if age is not None else None,
        gender=gender,
        interested_in=set(interested_in),
        interests=list(interests),
        location=Location(latitude=location[0], longitude=location[1]) if location else None,
        rating=rating,
        **kwargs,
    )


class InMemoryProfileStore:
    """Profile store double keeping insertion order."""

    def __init__(self, profiles: Iterable[Profile] = ()) -> None:
        self.profiles: Dict[str, Profile] = {}
        self.fail_listing = False
        for profile in profiles:
            self.add(profile)

    def add(self, profile: Profile) -> Profile:
        self.profiles[profile.id] = profile
        return profile

    def get_profile(self, user_id: str) -> Profile:
        if user_id not in self.profiles:
            raise NotFoundError(f"Profile not found: {user_id}")
        return self.profiles[user_id]

    def list_candidate_profiles(self, excluding: Iterable[str], limit: int) -> List[Profile]:
        if self.fail_listing:
            raise ConnectionError("profile store offline")
        excluded = set(excluding)
        return [p for p in self.profiles.values() if p.id not in excluded][:limit]


@pytest.fixture(autouse=True)
def reset_redis_client():
    """Reset the singleton RedisClient so every test starts with caching disabled."""
    RedisClient.reset()
    yield
    RedisClient.reset()


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so worker threads share one database."""
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'discovery.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def ledger(session_factory):
    return InterestLedger(session_factory)


@pytest.fixture
def block_list(session_factory):
    return BlockList(session_factory)


@pytest.fixture
def quota(session_factory):
    return QuotaTracker(session_factory)


@pytest.fixture
def materializer(session_factory, profile_store, block_list):
    return MatchMaterializer(session_factory, profile_store, block_list)


@pytest.fixture
def notifier():
    return MagicMock(spec=MatchNotifier)


@pytest.fixture
def discovery_service(profile_store, ledger, quota, materializer, block_list, notifier):
    return DiscoveryService(
        profile_store=profile_store,
        ledger=ledger,
        quota=quota,
        materializer=materializer,
        tier_resolver=PlanTierResolver(profile_store, free_limit=5),
        block_list=block_list,
        notifier=notifier,
        events=MatchEventBus(),
        batch_size=50,
        clock=lambda: NOW,
    )
