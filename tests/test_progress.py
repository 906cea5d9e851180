"""Progress derived from deliverable statuses."""

import pytest

from database.marketplace_models import Collaboration, Deliverable, DeliverableStatusDB
from services.errors import NotFound
from services.progress import compute_progress, recompute_progress


class TestComputeProgress:

    def test_one_of_three_approved_rounds_to_33(self):
        assert compute_progress(["approved", "pending", "submitted"]) == 33

    def test_two_of_three_approved_rounds_to_67(self):
        assert compute_progress(["approved", "approved", "rejected"]) == 67

    def test_half_rounds_up(self):
        assert compute_progress(["approved"] + ["pending"] * 7) == 13  # 12.5
        assert compute_progress(["approved", "pending"]) == 50

    def test_empty_list_is_zero(self):
        assert compute_progress([]) == 0

    def test_published_counts_as_approved(self):
        assert compute_progress([DeliverableStatusDB.PUBLISHED, DeliverableStatusDB.APPROVED]) == 100

    def test_accepts_enum_members(self):
        assert compute_progress([DeliverableStatusDB.APPROVED, DeliverableStatusDB.PENDING]) == 50

    def test_always_within_bounds(self):
        for total in range(1, 12):
            for approved in range(total + 1):
                statuses = ["approved"] * approved + ["pending"] * (total - approved)
                assert 0 <= compute_progress(statuses) <= 100

    def test_monotonic_in_approvals(self):
        total = 7
        values = [
            compute_progress(["approved"] * a + ["rejected"] * (total - a))
            for a in range(total + 1)
        ]
        assert values == sorted(values)
        assert values[0] == 0
        assert values[-1] == 100


class TestRecomputeProgress:

    def test_persists_progress_and_bumps_version(self, db, collaboration):
        deliverables = collaboration.deliverables
        assert len(deliverables) == 3
        version = collaboration.version

        db.query(Deliverable).filter(Deliverable.id == deliverables[0].id).update(
            {"status": DeliverableStatusDB.APPROVED}, synchronize_session="fetch"
        )
        db.query(Deliverable).filter(Deliverable.id == deliverables[2].id).update(
            {"status": DeliverableStatusDB.SUBMITTED}, synchronize_session="fetch"
        )

        assert recompute_progress(db, collaboration.id) == 33
        db.commit()

        refreshed = db.query(Collaboration).filter(Collaboration.id == collaboration.id).one()
        assert refreshed.progress == 33
        assert refreshed.version == version + 1

    def test_no_deliverables_is_zero(self, db, factory, brand, influencer):
        campaign = factory.campaign(brand, deliverables=0)
        collaboration = factory.collaboration(campaign, influencer)
        assert recompute_progress(db, collaboration.id) == 0

    def test_unknown_collaboration(self, db):
        with pytest.raises(NotFound):
            recompute_progress(db, "missing")
