"""Shared fixtures: in-memory SQLite, recording task dispatcher, fake media storage."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("INIT_DB_ON_STARTUP", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.media_storage import UploadError, get_media_storage
from database.config import get_db
from database.models import Base, InfluencerProfile, User, UserType
from database import marketplace_models, commerce_models  # noqa: F401 - register tables
from database.marketplace_models import (
    Campaign,
    CampaignDeliverableTemplate,
    CampaignStatusDB,
    Collaboration,
    CollaborationStatusDB,
)
from database.commerce_models import Product, ProductStatusDB
from services.collaboration_store import CollaborationStore
from services.task_dispatcher import TaskDispatcher, get_task_dispatcher


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over transaction control
@event.listens_for(engine, "connect")
def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============================================================================
# TEST DOUBLES
# ============================================================================

class RecordingDispatcher(TaskDispatcher):
    """Keeps dispatched tasks in memory instead of sending them to a broker."""

    def __init__(self):
        super().__init__(celery_app=object())
        self.sent = []

    def dispatch(self, task_name, **kwargs):
        self.sent.append((task_name, kwargs))

    def names(self):
        return [name for name, _ in self.sent]

    def of(self, task_name):
        return [kwargs for name, kwargs in self.sent if name == task_name]


class FakeStorage:
    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_on = None  # 0-based index of the upload that should fail

    def upload(self, file, folder):
        if self.fail_on is not None and len(self.uploaded) == self.fail_on:
            raise UploadError(f"Could not upload {file.filename}")
        url = f"https://media.test/{folder}/{file.filename}"
        self.uploaded.append(url)
        return url

    def delete(self, url):
        self.deleted.append(url)
        return True


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_session(db):
    """A second session on the same database, for interleaving two requests."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(db, dispatcher, storage):
    from server import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_media_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class Factory:
    """Builds committed rows for tests."""

    def __init__(self, db):
        self.db = db
        self._n = 0

    def _next(self):
        self._n += 1
        return self._n

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, user_type=UserType.BRAND, email=None, name=None):
        n = self._next()
        return self._save(User(
            email=email or f"{user_type.value}{n}@example.com",
            name=name or f"{user_type.value.title()} {n}",
            user_type=user_type,
        ))

    def brand(self):
        return self.user(UserType.BRAND)

    def influencer(self, referral_code=None, followers=10000):
        user = self.user(UserType.INFLUENCER)
        return self._save(InfluencerProfile(
            user_id=user.id,
            display_name=user.name,
            niche="lifestyle",
            referral_code=(referral_code or f"REF{self._next()}").upper(),
            total_followers=followers,
            channels=["instagram"],
        ))

    def campaign(self, brand, status=CampaignStatusDB.ACTIVE, commission_rate=Decimal("10"), deliverables=3, min_followers=0):
        campaign = Campaign(
            brand_id=brand.id,
            title=f"Campaign {self._next()}",
            status=status,
            budget=Decimal("1000"),
            commission_rate=commission_rate,
            min_followers=min_followers,
            start_date=datetime.utcnow(),
            end_date=datetime.utcnow() + timedelta(days=30),
        )
        for position in range(deliverables):
            campaign.deliverable_templates.append(CampaignDeliverableTemplate(
                position=position,
                platform="instagram",
                task_description=f"Post #{position + 1}",
                num_posts=1,
            ))
        return self._save(campaign)

    def product(self, campaign, price=Decimal("19.999"), target=None, stock=0, delivery_days=None, status=ProductStatusDB.ACTIVE):
        return self._save(Product(
            campaign_id=campaign.id,
            brand_id=campaign.brand_id,
            name=f"Product {self._next()}",
            campaign_price=price,
            target_quantity=target,
            sold_quantity=0,
            stock_quantity=stock,
            delivery_days=delivery_days,
            status=status,
        ))

    def collaboration(self, campaign, influencer, status=CollaborationStatusDB.ACTIVE, seed=True):
        store = CollaborationStore(self.db)
        collaboration = store.create_collaboration(campaign.id, influencer.id, status)
        if seed:
            store.seed_deliverables_from_template(collaboration.id)
        self.db.commit()
        self.db.refresh(collaboration)
        return collaboration


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def brand(factory):
    return factory.brand()


@pytest.fixture
def influencer(factory):
    return factory.influencer(referral_code="JANE10")


@pytest.fixture
def active_campaign(factory, brand):
    return factory.campaign(brand)


@pytest.fixture
def collaboration(factory, active_campaign, influencer):
    return factory.collaboration(active_campaign, influencer)
