import os
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from evote.db_models import Candidate, User, Vote, VotingPeriod
from evote.services import PeriodService


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


def _count(database, model, *where):
    with database.session() as db:
        return db.execute(select(func.count()).select_from(model).where(*where)).scalar_one()


def _voted_user(database, make_user):
    user_id, _ = make_user("voter")
    with database.session() as db:
        db.get(User, user_id).has_voted = True
        db.commit()
    return user_id


def _has_voted(database, user_id):
    with database.session() as db:
        return db.get(User, user_id).has_voted


def test_start_publishes_staged_candidates_and_resets_users(client, database, bus, make_user, stage, start):
    user_id = _voted_user(database, make_user)
    first = stage("Ada")
    second = stage("Bola", lga="Epe")

    period_id = start()

    with database.session() as db:
        rows = db.execute(select(Candidate).order_by(Candidate.id)).scalars().all()
        assert [(c.id, c.period_id, c.published, c.votes) for c in rows] == [
            (first, period_id, True, 0),
            (second, period_id, True, 0),
        ]
        assert db.get(User, user_id).has_voted is False
    assert ("votingStarted", {"periodId": period_id}) in bus.events
    assert bus.names()[-1] == "candidatesUpdated"


def test_start_without_staged_candidates_creates_no_period(client, database, admin_headers, make_user):
    user_id = _voted_user(database, make_user)
    r = client.post(
        "/period/start",
        json={"startTime": _iso(timedelta(hours=-1)), "endTime": _iso(timedelta(hours=1))},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json() == {"error": "No unpublished candidates available to start voting"}
    assert _count(database, VotingPeriod) == 0
    assert _has_voted(database, user_id) is True


def test_start_losing_concurrent_race_reports_active_period(client, database, monkeypatch, admin_headers, stage, start):
    stage("Ada")
    winner = start()

    # this request checked for an active period before the winner committed
    real_check = PeriodService._active_period
    calls = []

    def stale_check(self, now, *, exclude_id=None):
        calls.append(exclude_id)
        if len(calls) == 1:
            return None
        return real_check(self, now, exclude_id=exclude_id)

    monkeypatch.setattr(PeriodService, "_active_period", stale_check)

    r = client.post(
        "/period/start",
        json={"startTime": _iso(timedelta(0)), "endTime": _iso(timedelta(hours=2))},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json() == {"error": "There is already an active voting period"}
    assert len(calls) == 2 and calls[1] is not None
    assert _count(database, VotingPeriod) == 1
    assert client.get("/period").json()["id"] == winner


def test_start_rejects_inverted_or_missing_window(client, admin_headers, stage):
    stage("Ada")
    r = client.post(
        "/period/start",
        json={"startTime": _iso(timedelta(hours=1)), "endTime": _iso(timedelta(hours=-1))},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "End time must be after start time"

    r = client.post("/period/start", json={"startTime": _iso(timedelta(0))}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "startTime and endTime are required"


def test_start_while_active_conflicts_without_mutation(client, database, admin_headers, make_user, stage, start):
    stage("Ada")
    period_id = start()
    user_id = _voted_user(database, make_user)
    staged = stage("Late Entry")

    r = client.post(
        "/period/start",
        json={"startTime": _iso(timedelta(0)), "endTime": _iso(timedelta(hours=2))},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "There is already an active voting period"
    assert _count(database, VotingPeriod) == 1
    with database.session() as db:
        late = db.get(Candidate, staged)
        assert late.period_id is None and late.published is False
    assert _has_voted(database, user_id) is True
    assert client.get("/period").json()["id"] == period_id


def test_new_period_can_start_after_previous_ends(client, admin_headers, stage, start):
    stage("Ada")
    first = start(begin=timedelta(hours=-3), end=timedelta(hours=-2))
    stage("Bola")

    second = start()
    assert second != first
    names = [c["name"] for c in client.get("/candidates").json()]
    assert names == ["Bola"]


def test_end_early_then_repeat_errors(client, bus, admin_headers, stage, start):
    stage("Ada")
    period_id = start()

    r = client.post("/period/end", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Voting ended early"}
    assert ("votingEnded", {"periodId": period_id}) in bus.events
    assert client.get("/period").json()["forcedEnded"] is True

    r = client.post("/period/end", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Voting already forced to end"


def test_end_and_publish_without_any_period(client, admin_headers):
    for path in ("/period/end", "/period/publish"):
        r = client.post(path, headers=admin_headers)
        assert r.status_code == 400
        assert r.json() == {"error": "No voting period found"}


def test_publish_requires_ended_period(client, bus, admin_headers, stage, start):
    stage("Ada")
    period_id = start()

    r = client.post("/period/publish", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Voting still ongoing"

    client.post("/period/end", headers=admin_headers)
    r = client.post("/period/publish", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Results published"}
    assert ("resultsPublished", {"periodId": period_id}) in bus.events

    r = client.post("/period/publish", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Results already published"


def test_publish_after_natural_end(client, admin_headers, stage, start):
    stage("Ada")
    start(begin=timedelta(hours=-2), end=timedelta(minutes=-1))
    r = client.post("/period/publish", headers=admin_headers)
    assert r.status_code == 200


def test_delete_active_period_conflicts(client, admin_headers, stage, start):
    stage("Ada")
    period_id = start()
    r = client.delete(f"/period/{period_id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete an active voting period"


def test_delete_missing_period(client, admin_headers):
    r = client.delete("/period/999", headers=admin_headers)
    assert r.status_code == 404
    assert r.json() == {"error": "Voting period not found"}


def test_delete_concluded_period_removes_votes_candidates_and_photos(
    client, database, settings, bus, admin_headers, make_user, stage, start
):
    photo = os.path.join(settings.uploads_dir, "ada.png")
    with open(photo, "wb") as fh:
        fh.write(b"png")
    ada = stage("Ada", photo_url="/uploads/ada.png")
    period_id = start()
    _, voter = make_user("voter")
    assert client.post("/vote", json={"candidateId": ada}, headers=voter).status_code == 201
    client.post("/period/end", headers=admin_headers)
    leftover = stage("Next Time")

    r = client.delete(f"/period/{period_id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Voting period deleted"}

    assert _count(database, VotingPeriod) == 0
    assert _count(database, Vote) == 0
    with database.session() as db:
        assert db.execute(select(Candidate.id)).scalars().all() == [leftover]
    assert not os.path.exists(photo)
    assert bus.names()[-2:] == ["periodDeleted", "candidatesUpdated"]
    assert bus.events[-2] == ("periodDeleted", {"periodId": period_id})


def test_delete_survives_missing_photo_file(client, admin_headers, stage, start):
    stage("Ada", photo_url="/uploads/never-written.png")
    period_id = start(begin=timedelta(hours=-2), end=timedelta(hours=-1))
    r = client.delete(f"/period/{period_id}", headers=admin_headers)
    assert r.status_code == 200


def test_latest_and_history_reads(client, admin_headers, make_user, stage, start):
    assert client.get("/period").json() is None

    stage("Ada")
    first = start(begin=timedelta(hours=-3), end=timedelta(hours=-1))
    stage("Bola")
    second = start()

    assert client.get("/period").json()["id"] == second
    assert [p["id"] for p in client.get("/periods").json()] == [second, first]
    assert [p["id"] for p in client.get("/admin/periods", headers=admin_headers).json()] == [second, first]
    assert client.get("/admin/period", headers=admin_headers).json()["id"] == second
