"""Persistence gateway: natural-key idempotence and merge modes."""

import pytest
from sqlmodel import select

from app.core.errors import PersistenceError
from app.models.entities import Campaign, Insight, MetricSample, SyncRun
from app.storage.gateway import UpsertMode


def test_upsert_twice_leaves_one_row(gateway, session, account):
    key = {"account_id": account.id, "external_id": "c-1"}
    first, created = gateway.upsert(Campaign, key, {"name": "Summer", "status": "ACTIVE"})
    second, created_again = gateway.upsert(Campaign, key, {"name": "Summer", "status": "ACTIVE"})

    assert created is True
    assert created_again is False
    assert first.id == second.id
    assert len(session.exec(select(Campaign)).all()) == 1


def test_unchanged_upsert_keeps_updated_at(gateway, account):
    key = {"account_id": account.id, "external_id": "c-1"}
    row, _ = gateway.upsert(Campaign, key, {"name": "Summer"})
    stamp = row.updated_at
    row, _ = gateway.upsert(Campaign, key, {"name": "Summer"})
    assert row.updated_at == stamp


def test_partial_upsert_only_writes_supplied_fields(gateway, account):
    key = {"account_id": account.id, "external_id": "c-1"}
    gateway.upsert(Campaign, key, {"name": "Summer", "objective": "SALES"})
    row, _ = gateway.upsert(Campaign, key, {"status": "PAUSED"})
    assert row.name == "Summer"
    assert row.objective == "SALES"
    assert row.status == "PAUSED"


def test_partial_upsert_preserves_desired_cpa(gateway, account):
    key = {"account_id": account.id, "external_id": "c-1"}
    row, _ = gateway.upsert(Campaign, key, {"name": "Summer"})
    gateway.set_desired_cpa(row, 42.0)
    row, _ = gateway.upsert(Campaign, key, {"name": "Summer Sale"})
    assert row.desired_cpa == 42.0


def test_replace_upsert_overwrites_sample(gateway, session):
    key = {"entity_type": "campaign", "entity_id": 1, "date": "2024-05-01"}
    gateway.upsert(MetricSample, key, {"spend": 10.0, "clicks": 5, "reach": 100}, UpsertMode.REPLACE)
    row, created = gateway.upsert(MetricSample, key, {"spend": 12.5, "clicks": 7}, UpsertMode.REPLACE)

    assert created is False
    assert row.spend == 12.5
    assert row.clicks == 7
    # Not supplied on the second write, so reset
    assert row.reach == 0
    assert len(session.exec(select(MetricSample)).all()) == 1


def test_upsert_failure_raises_persistence_error(gateway):
    # account_id is NOT NULL; omitting it from both key and fields fails the insert
    with pytest.raises(PersistenceError):
        gateway.upsert(Campaign, {"external_id": "orphan"}, {"account_id": None})


def test_sync_runs_are_newest_first(gateway, account):
    for touched in (1, 2, 3, 4, 5, 6):
        gateway.record_sync_run(account.id, "incremental", "success", touched, 10)
    runs = gateway.recent_sync_runs(account.id)
    assert [r.records_touched for r in runs] == [6, 5, 4, 3, 2]
    assert all(isinstance(r, SyncRun) for r in runs)


def test_insight_history_filters_by_type(gateway):
    gateway.append_insight("general_insights", "a", 0.85, True, "fp1", {"x": 1})
    gateway.append_insight("campaign_analysis", "b", 0.85, True, "fp2", {})
    gateway.append_insight("general_insights", "c", 0.85, True, "fp3", {})

    history = gateway.insight_history(limit=10, type="general_insights")
    assert [i.content for i in history] == ["c", "a"]
    assert all(isinstance(i, Insight) for i in history)
    assert gateway.insight_history(limit=1)[0].content == "c"


def test_latest_samples_and_counts(gateway, account, make_campaign, add_sample):
    a = make_campaign(account, "c-1")
    b = make_campaign(account, "c-2")
    add_sample(a, "2024-05-01", spend=1.0)
    add_sample(a, "2024-05-03", spend=3.0)

    latest = gateway.latest_samples("campaign", [a.id, b.id])
    assert latest[a.id].date == "2024-05-03"
    assert b.id not in latest
    assert gateway.campaign_counts([account.id]) == {account.id: 2}
