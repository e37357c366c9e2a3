from datetime import timedelta

from django.utils import timezone

from api.views import calls


def _seed_call(db, call_id="call-1", status="pending", caller="alice", receiver="bob", age_seconds=0, **fields):
    created = timezone.now() - timedelta(seconds=age_seconds)
    db.add("call_requests", call_id, {
        "id": call_id,
        "caller_id": caller,
        "receiver_id": receiver,
        "call_type": "video",
        "status": status,
        "room_id": f"room-{call_id}",
        "created_at": created,
        "updated_at": created,
        "expires_at": created + timedelta(seconds=45),
        "answered_at": None,
        "ended_at": None,
        "duration_sec": None,
        "push_sent": False,
        **fields,
    })
    return call_id


class TestRequest:
    def test_creates_pending_call_and_pushes(self, api, db, pushes):
        response = api.post("calls/request", {"receiver_id": "bob", "call_type": "audio"})

        assert response.status_code == 201
        body = response.json()
        assert body["pushSent"] is True
        assert body["callType"] == "audio"
        assert body["roomId"].startswith("call_")

        stored = db.get("call_requests", body["callId"])
        assert stored["status"] == "pending"
        assert stored["caller_id"] == "alice"
        assert stored["push_sent"] is True
        assert pushes == [("incoming_call", "bob-fcm", body["callId"], "Alice Founder")]
        assert body["callId"] in calls._missed_timers

    def test_receiver_without_device(self, api):
        body = api.post("calls/request", {"receiver_id": "carol"}).json()

        assert body["pushSent"] is False
        assert body["pushError"] == "missing_token"

    def test_validation(self, api):
        assert api.post("calls/request", {}).json()["error"] == "missing_fields"
        assert api.post("calls/request", {"receiver_id": "alice"}).json()["error"] == "cannot_call_self"
        assert api.post("calls/request", {"receiver_id": "bob", "call_type": "hologram"}).json()["error"] == (
            "invalid_call_type"
        )

    def test_unknown_receiver(self, api):
        response = api.post("calls/request", {"receiver_id": "nobody"})

        assert response.status_code == 404
        assert response.json()["error"] == "receiver_not_found"


class TestAnswer:
    def test_receiver_accepts(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/answer", {"call_id": call_id, "action": "accept"}, user="bob")

        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        stored = db.get("call_requests", call_id)
        assert stored["status"] == "accepted"
        assert stored["answered_at"] is not None

    def test_receiver_declines(self, api, db):
        call_id = _seed_call(db)

        api.post("calls/answer", {"call_id": call_id, "action": "decline"}, user="bob")

        stored = db.get("call_requests", call_id)
        assert stored["status"] == "declined"
        assert stored["ended_at"] is not None

    def test_caller_cannot_answer(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/answer", {"call_id": call_id, "action": "accept"})

        assert response.status_code == 403
        assert response.json()["error"] == "only_receiver_can_answer"

    def test_outsider_is_rejected(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/answer", {"call_id": call_id, "action": "accept"}, user="carol")

        assert response.status_code == 403
        assert response.json()["error"] == "not_call_participant"

    def test_only_pending_calls(self, api, db):
        call_id = _seed_call(db, status="cancelled")

        response = api.post("calls/answer", {"call_id": call_id, "action": "accept"}, user="bob")

        assert response.status_code == 409
        assert response.json() == {"error": "call_not_pending", "currentStatus": "cancelled"}

    def test_invalid_action_and_unknown_call(self, api, db):
        call_id = _seed_call(db)

        assert api.post("calls/answer", {"call_id": call_id, "action": "maybe"}, user="bob").status_code == 400
        assert api.post("calls/answer", {"call_id": "nope", "action": "accept"}, user="bob").status_code == 404
        assert api.post("calls/answer", {"action": "accept"}, user="bob").json()["error"] == "missing_call_id"

    def test_answer_cancels_missed_timer(self, api, db):
        call_id = api.post("calls/request", {"receiver_id": "bob"}).json()["callId"]

        api.post("calls/answer", {"call_id": call_id, "action": "accept"}, user="bob")

        assert call_id not in calls._missed_timers


class TestCancelAndMissed:
    def test_caller_cancels_and_receiver_is_notified(self, api, db, pushes):
        call_id = _seed_call(db)

        response = api.post("calls/cancel", {"call_id": call_id})

        assert response.status_code == 200
        assert db.get("call_requests", call_id)["status"] == "cancelled"
        assert pushes == [("call_cancelled", "bob-fcm", call_id)]

    def test_receiver_cannot_cancel(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/cancel", {"call_id": call_id}, user="bob")

        assert response.status_code == 403

    def test_mark_missed(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/missed", {"call_id": call_id}, user="bob")

        assert response.status_code == 200
        assert db.get("call_requests", call_id)["status"] == "missed"

    def test_missed_timer_marks_pending_call(self, db):
        call_id = _seed_call(db)

        calls._schedule_missed_timeout(call_id, 0.2)
        with calls._missed_timers_lock:
            timer = calls._missed_timers[call_id]
        timer.join(2)

        assert db.get("call_requests", call_id)["status"] == "missed"
        assert call_id not in calls._missed_timers

    def test_missed_timer_leaves_answered_call(self, db):
        call_id = _seed_call(db, status="accepted")

        calls._schedule_missed_timeout(call_id, 0.2)
        with calls._missed_timers_lock:
            timer = calls._missed_timers[call_id]
        timer.join(2)

        assert db.get("call_requests", call_id)["status"] == "accepted"


class TestEnd:
    def test_records_duration_from_answer(self, api, db):
        call_id = _seed_call(db, status="accepted", answered_at=timezone.now() - timedelta(seconds=90))

        response = api.post("calls/end", {"call_id": call_id}, user="bob")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ended"
        assert 89 <= body["durationSeconds"] <= 92
        assert db.get("call_requests", call_id)["duration_sec"] == body["durationSeconds"]

    def test_pending_call_cannot_be_ended(self, api, db):
        call_id = _seed_call(db)

        response = api.post("calls/end", {"call_id": call_id})

        assert response.status_code == 409
        assert response.json() == {"error": "call_not_active", "currentStatus": "pending"}


class TestStatus:
    def test_participants_can_read(self, api, db):
        call_id = _seed_call(db)

        response = api.get(f"calls/{call_id}", user="bob")

        assert response.status_code == 200
        call = response.json()["call"]
        assert call["status"] == "pending"
        assert isinstance(call["created_at"], str)

    def test_outsiders_cannot_read(self, api, db):
        call_id = _seed_call(db)

        assert api.get(f"calls/{call_id}", user="carol").status_code == 403
        assert api.get("calls/unknown").status_code == 404

    def test_rate_limited(self, api, db):
        call_id = _seed_call(db)
        for _ in range(60):
            assert api.get(f"calls/{call_id}").status_code == 200

        response = api.get(f"calls/{call_id}")

        assert response.status_code == 429
        assert response["Retry-After"]


class TestSweep:
    def test_marks_expired_pending_calls(self, api, db):
        _seed_call(db, "old", age_seconds=120)
        _seed_call(db, "fresh", age_seconds=5)
        _seed_call(db, "answered", status="accepted", age_seconds=120)

        response = api.post("calls/timeout/sweep", {"timeout_seconds": 60}, user=None)

        assert response.status_code == 200
        assert response.json()["updatedCount"] == 1
        assert db.get("call_requests", "old")["status"] == "missed"
        assert db.get("call_requests", "fresh")["status"] == "pending"
        assert db.get("call_requests", "answered")["status"] == "accepted"

    def test_invalid_timeout(self, api):
        response = api.post("calls/timeout/sweep", {"timeout_seconds": "soon"}, user=None)

        assert response.status_code == 400

    def test_negative_timeout_is_rejected(self, api, db):
        _seed_call(db, "fresh", age_seconds=5)

        response = api.post("calls/timeout/sweep", {"timeout_seconds": -3600}, user=None)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_timeout_seconds"
        assert db.get("call_requests", "fresh")["status"] == "pending"

    def test_large_backlog_is_committed_in_batches(self, api, db):
        for index in range(600):
            _seed_call(db, f"old-{index}", age_seconds=120)

        response = api.post("calls/timeout/sweep", {"timeout_seconds": 60}, user=None)

        assert response.status_code == 200
        assert response.json()["updatedCount"] == 600
        assert all(call["status"] == "missed" for call in db.all("call_requests"))

    def test_shared_secret(self, api, monkeypatch):
        monkeypatch.setenv("CALL_SWEEP_SECRET", "s3cret")

        assert api.post("calls/timeout/sweep", {}, user=None).status_code == 403
        assert api.post("calls/timeout/sweep", {}, user=None, HTTP_X_SWEEP_SECRET="s3cret").status_code == 200
