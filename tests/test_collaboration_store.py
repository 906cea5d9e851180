"""Collaboration store: uniqueness, deliverable seeding and conditional transitions."""

from decimal import Decimal

import pytest

from database.marketplace_models import CollaborationStatusDB, Deliverable, DeliverableStatusDB
from services.collaboration_store import CollaborationStore
from services.errors import DuplicateCollaboration, NotFound, StateConflict


class TestCreateCollaboration:

    def test_second_live_collaboration_for_pair_is_rejected(self, db, active_campaign, influencer):
        store = CollaborationStore(db)
        store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.REQUEST)
        db.commit()

        with pytest.raises(DuplicateCollaboration):
            store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.BRAND_INVITE)

    def test_cancelled_collaboration_does_not_block_a_new_one(self, db, active_campaign, influencer):
        store = CollaborationStore(db)
        first = store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.REQUEST)
        assert store.set_status(first.id, [CollaborationStatusDB.REQUEST], CollaborationStatusDB.CANCELLED)
        db.commit()

        second = store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.REQUEST)
        db.commit()
        assert second.id != first.id

    def test_partial_unique_index_guards_concurrent_inserts(self, db, active_campaign, influencer, monkeypatch):
        store = CollaborationStore(db)
        store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.REQUEST)
        db.commit()

        # the pre-check misses the row, as it would for a concurrent request
        monkeypatch.setattr(store, "find_live_collaboration", lambda *args: None)
        with pytest.raises(DuplicateCollaboration):
            store.create_collaboration(active_campaign.id, influencer.id, CollaborationStatusDB.REQUEST)


class TestSeedDeliverables:

    def test_copies_template_in_order(self, db, factory, active_campaign, influencer):
        collaboration = factory.collaboration(active_campaign, influencer, seed=False)
        seeded = CollaborationStore(db).seed_deliverables_from_template(collaboration.id)

        assert [d.position for d in seeded] == [0, 1, 2]
        assert all(d.status == DeliverableStatusDB.PENDING for d in seeded)
        assert seeded[0].task_description == "Post #1"

    def test_is_idempotent(self, db, collaboration):
        store = CollaborationStore(db)
        first_ids = [d.id for d in collaboration.deliverables]

        again = store.seed_deliverables_from_template(collaboration.id)
        db.commit()

        assert [d.id for d in again] == first_ids
        assert db.query(Deliverable).filter(Deliverable.collaboration_id == collaboration.id).count() == 3


class TestTransitions:

    def test_transition_only_from_expected_status(self, db, collaboration):
        store = CollaborationStore(db)
        deliverable = collaboration.deliverables[0]

        assert not store.transition_deliverable(
            deliverable.id, [DeliverableStatusDB.SUBMITTED], DeliverableStatusDB.APPROVED
        )
        assert store.transition_deliverable(
            deliverable.id, [DeliverableStatusDB.PENDING], DeliverableStatusDB.SUBMITTED
        )
        db.commit()
        db.refresh(deliverable)
        assert deliverable.status == DeliverableStatusDB.SUBMITTED
        assert deliverable.version == 2

    def test_require_transition_raises_on_stale_status(self, db, collaboration):
        store = CollaborationStore(db)
        deliverable = collaboration.deliverables[0]
        with pytest.raises(StateConflict):
            store.require_transition(deliverable.id, [DeliverableStatusDB.APPROVED], DeliverableStatusDB.PUBLISHED)

    def test_transition_keyed_on_current_content(self, db, collaboration):
        store = CollaborationStore(db)
        deliverable = collaboration.deliverables[0]
        store.transition_deliverable(
            deliverable.id, [DeliverableStatusDB.PENDING], DeliverableStatusDB.SUBMITTED,
            values={"current_content_id": "content-2"},
        )

        assert not store.transition_deliverable(
            deliverable.id, [DeliverableStatusDB.SUBMITTED], DeliverableStatusDB.APPROVED,
            expected_content_id="content-1",
        )
        assert store.transition_deliverable(
            deliverable.id, [DeliverableStatusDB.SUBMITTED], DeliverableStatusDB.APPROVED,
            expected_content_id="content-2",
        )


class TestLookup:

    def test_find_deliverable_of_other_collaboration(self, db, factory, active_campaign, collaboration):
        other = factory.collaboration(active_campaign, factory.influencer())
        with pytest.raises(NotFound):
            CollaborationStore(db).find_deliverable(collaboration.id, other.deliverables[0].id)

    def test_missing_collaboration(self, db):
        with pytest.raises(NotFound):
            CollaborationStore(db).get_collaboration("missing")


class TestAttribution:

    def test_increments_existing_collaboration(self, db, collaboration):
        store = CollaborationStore(db)
        store.increment_attribution(collaboration.campaign_id, collaboration.influencer_id, Decimal("50.000"), Decimal("5.000"))
        store.increment_attribution(collaboration.campaign_id, collaboration.influencer_id, Decimal("10.500"), Decimal("1.050"))
        db.commit()
        db.refresh(collaboration)

        assert collaboration.revenue == Decimal("60.500")
        assert collaboration.commission_earned == Decimal("6.050")
        assert collaboration.conversions == 2

    def test_creates_active_collaboration_when_missing(self, db, active_campaign, influencer):
        store = CollaborationStore(db)
        created = store.increment_attribution(active_campaign.id, influencer.id, Decimal("20.000"), Decimal("2.000"))
        db.commit()

        assert created.status == CollaborationStatusDB.ACTIVE
        assert created.progress == 0
        assert created.timeliness_score == 100
        assert created.conversions == 1
