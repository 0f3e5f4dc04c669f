"""
/api/schedule routes with the record store mocked out.
"""

from unittest.mock import Mock

import pytest

from careerme.core import schedule
from careerme.core.schema import Record

EVENT = {
    "companyId": "c1",
    "title": "一次面接",
    "startsAt": "2024-05-01T01:00:00.000Z",
    "endsAt": "2024-05-01T02:00:00.000Z",
}


def stored(record_id, **fields):
    return Record(id=record_id, created_time="2024-01-01T00:00:00.000Z", fields=fields)


@pytest.fixture
def mock_store(monkeypatch):
    store = Mock()
    store.list_records.return_value = []
    store.get_record.return_value = None
    store.create_records.return_value = [stored("recEvt")]
    store.update_records.return_value = [stored("recEvt")]
    monkeypatch.setattr(schedule, "get_store", lambda: store)
    return store


class TestEvents:

    def test_list(self, client, mock_store):
        mock_store.list_records.return_value = [stored("rec1", **EVENT)]

        response = client.get("/api/schedule", params={"from": "2024-05-01T09:00:00+09:00",
                                                        "status": "scheduled", "limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["items"][0]["id"] == "rec1"
        assert body["items"][0]["icalUid"] == "rec1@careerme"
        assert body["correlationId"] == response.headers["x-correlation-id"]

        kwargs = mock_store.list_records.call_args.kwargs
        assert kwargs["filter_formula"] == "AND(IS_AFTER({startsAt}, '2024-05-01T00:00:00.000Z'),{status}='scheduled')"
        assert kwargs["max_records"] == 5

    @pytest.mark.parametrize("params", [{"from": "yesterday"}, {"status": "archived"}, {"limit": 0}])
    def test_invalid_query(self, client, mock_store, params):
        response = client.get("/api/schedule", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"
        mock_store.list_records.assert_not_called()

    def test_create_uses_company_header(self, client, mock_store):
        response = client.post("/api/schedule", headers={"x-company-id": "c9"}, json={
            "title": "一次面接", "startsAt": EVENT["startsAt"], "endsAt": EVENT["endsAt"],
        })

        assert response.status_code == 200
        assert response.json()["eventId"] == "recEvt"
        assert mock_store.create_records.call_args.args[1][0]["fields"]["companyId"] == "c9"

    def test_create_defaults_company(self, client, mock_store):
        client.post("/api/schedule", json={"title": "面接", "startsAt": EVENT["startsAt"], "endsAt": EVENT["endsAt"]})
        assert mock_store.create_records.call_args.args[1][0]["fields"]["companyId"] == "default-company"

    def test_create_rejects_end_before_start(self, client, mock_store):
        response = client.post("/api/schedule", json={
            "title": "面接", "startsAt": EVENT["endsAt"], "endsAt": EVENT["startsAt"],
        })

        assert response.status_code == 400
        mock_store.create_records.assert_not_called()

    def test_get(self, client, mock_store):
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.get("/api/schedule/rec1")

        assert response.status_code == 200
        assert response.json()["event"]["title"] == "一次面接"

    def test_get_unknown(self, client, mock_store):
        response = client.get("/api/schedule/recMissing")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_update(self, client, mock_store):
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.put("/api/schedule/rec1", json={"status": "done"})

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert mock_store.update_records.call_args.args[1] == [{"id": "rec1", "fields": {"status": "done"}}]

    def test_update_rejects_end_before_stored_start(self, client, mock_store):
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.put("/api/schedule/rec1", json={"endsAt": "2024-04-30T00:00:00Z"})

        assert response.status_code == 400
        mock_store.update_records.assert_not_called()

    def test_delete_cancels(self, client, mock_store):
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.delete("/api/schedule/rec1")

        assert response.status_code == 200
        assert mock_store.update_records.call_args.args[1] == [{"id": "rec1", "fields": {"status": "cancelled"}}]

    def test_store_not_configured(self, client):
        response = client.get("/api/schedule")

        assert response.status_code == 500
        assert response.json()["code"] == "config_error"


class TestCalendarExport:

    def test_feed(self, client, mock_store):
        mock_store.list_records.side_effect = [[stored("recCo", id="c1")], [stored("rec1", **EVENT)]]

        response = client.get("/api/schedule/export.ics", params={"token": "tok-1"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert "s-maxage=300" in response.headers["cache-control"]
        assert response.text.startswith("BEGIN:VCALENDAR\r\n")
        assert "UID:rec1@careerme" in response.text

        events_query = mock_store.list_records.call_args_list[1].kwargs
        assert events_query["filter_formula"] == "AND({status}='scheduled',{companyId}='c1')"

    def test_feed_requires_token(self, client, mock_store):
        assert client.get("/api/schedule/export.ics").status_code == 400

    def test_feed_unknown_token(self, client, mock_store):
        response = client.get("/api/schedule/export.ics", params={"token": "tok-unknown"})
        assert response.status_code == 404

    def test_single_event(self, client, mock_store):
        mock_store.list_records.return_value = [stored("recCo", id="c1")]
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.get("/api/schedule/rec1/export.ics", params={"token": "tok-1"})

        assert response.status_code == 200
        assert response.text.count("BEGIN:VEVENT") == 1
        assert response.text.endswith("END:VCALENDAR\r\n")

    def test_single_event_of_another_company(self, client, mock_store):
        mock_store.list_records.return_value = [stored("recCo", id="c2")]
        mock_store.get_record.return_value = stored("rec1", **EVENT)

        response = client.get("/api/schedule/rec1/export.ics", params={"token": "tok-2"})

        assert response.status_code == 404

    def test_calendar_token(self, client, mock_store):
        mock_store.list_records.return_value = [stored("c1", calendarToken="tok-1")]

        response = client.post("/api/schedule/calendar-token", headers={"x-company-id": "c1"})

        assert response.status_code == 200
        assert response.json()["token"] == "tok-1"


class TestCronNotify:

    def test_requires_cron_header(self, client, mock_store):
        response = client.post("/api/schedule/cron/notify")

        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"
        mock_store.list_records.assert_not_called()

    def test_sends_pending_reminders(self, client, mock_store):
        mock_store.list_records.return_value = [stored("rec1", **EVENT), stored("rec2", **EVENT)]

        response = client.post("/api/schedule/cron/notify", headers={"x-vercel-cron": "1"})

        assert response.status_code == 200
        assert response.json()["sent"] == 2
        assert mock_store.update_records.call_count == 2


def test_suggest(client):
    response = client.post("/api/schedule/suggest", json={"seed": "面接"})

    assert response.status_code == 200
    proposals = response.json()["proposals"]
    assert len(proposals) == 2
    assert proposals[0]["description"] == "Seed: 面接"


def test_suggest_rejects_bad_window(client):
    response = client.post("/api/schedule/suggest", json={"windowStart": "next week"})
    assert response.status_code == 400
