import json
from datetime import date, datetime

import httpx
import pytest

from app.config import Settings
from app.models.models import AccountSettings, Project
from app.services.calendar_sync import (
    CalDavCalendarSync,
    CalendarSyncError,
    GoogleCalendarSync,
    build_ics,
    calendar_sync_for,
    event_for_project,
)
from app.services.projects import try_push_to_calendar


def sample_project(**overrides):
    values = dict(
        id=7,
        name="Salle de bain",
        status="En cours",
        due_date=date(2026, 5, 4),
        responsible="Paul",
        comment="Accès par la cour, code 1234",
        calendar_event_id=None,
    )
    values.update(overrides)
    return Project(**values)


def test_ics_document():
    event = event_for_project(sample_project(), "Marie Dupont")
    ics = build_ics(event, now=datetime(2026, 5, 1, 12, 0, 0))
    lines = ics.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "UID:project-7@plombicrm" in lines
    assert "DTSTAMP:20260501T120000Z" in lines
    assert "DTSTART;TZID=Europe/Paris:20260504T080000" in lines
    assert "DTEND;TZID=Europe/Paris:20260504T090000" in lines
    assert "SUMMARY:Chantier - Salle de bain" in lines
    assert (
        "DESCRIPTION:Client: Marie Dupont\\nStatut: En cours\\nResponsable: Paul"
        "\\nCommentaire: Accès par la cour\\, code 1234"
    ) in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_description_skips_empty_fields():
    event = event_for_project(sample_project(responsible="", comment=None), None)
    assert event.description == "Client: \nStatut: En cours"


def google_transport(calls, update_status=200):
    def handler(request: httpx.Request):
        calls.append((request.method, request.url.path))
        if request.url.path == "/token":
            return httpx.Response(200, json={"access_token": "at-1"})
        assert request.headers["Authorization"] == "Bearer at-1"
        if request.method == "PUT":
            if update_status != 200:
                return httpx.Response(update_status, json={})
            return httpx.Response(200, json={"id": "evt-1", "htmlLink": "https://cal/evt-1"})
        body = json.loads(request.content)
        assert body["start"]["timeZone"] == "Europe/Paris"
        return httpx.Response(200, json={"id": "evt-new", "htmlLink": "https://cal/evt-new"})

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def local_token_url(monkeypatch):
    monkeypatch.setattr("app.services.calendar_sync.GOOGLE_TOKEN_URL", "https://oauth.test/token")


def test_google_inserts_when_no_event_yet():
    calls = []
    sync = GoogleCalendarSync("id", "secret", "refresh", http=httpx.Client(transport=google_transport(calls)))
    ref = sync.upsert_event(event_for_project(sample_project(), "Marie"))
    assert ref.id == "evt-new"
    assert [c[0] for c in calls] == ["POST", "POST"]


def test_google_updates_existing_event():
    calls = []
    sync = GoogleCalendarSync("id", "secret", "refresh", http=httpx.Client(transport=google_transport(calls)))
    ref = sync.upsert_event(event_for_project(sample_project(calendar_event_id="evt-1"), "Marie"))
    assert ref.url == "https://cal/evt-1"
    assert [c[0] for c in calls] == ["POST", "PUT"]


def test_google_recreates_event_deleted_remotely():
    calls = []
    http = httpx.Client(transport=google_transport(calls, update_status=404))
    sync = GoogleCalendarSync("id", "secret", "refresh", http=http)
    ref = sync.upsert_event(event_for_project(sample_project(calendar_event_id="gone"), "Marie"))
    assert ref.id == "evt-new"
    assert [c[0] for c in calls] == ["POST", "PUT", "POST"]


def test_google_requires_credentials():
    with pytest.raises(CalendarSyncError):
        GoogleCalendarSync("", "", "refresh")
    with pytest.raises(CalendarSyncError):
        GoogleCalendarSync("id", "secret", None)


def test_caldav_puts_then_verifies():
    seen = []

    def handler(request: httpx.Request):
        seen.append((request.method, str(request.url)))
        if request.method == "PUT":
            assert request.headers["Content-Type"].startswith("text/calendar")
            assert b"UID:project-7@plombicrm" in request.content
            return httpx.Response(201)
        return httpx.Response(200, text="BEGIN:VCALENDAR")

    sync = CalDavCalendarSync("https://dav.test/cal", "me", "pw", http=httpx.Client(transport=httpx.MockTransport(handler)))
    ref = sync.upsert_event(event_for_project(sample_project(), "Marie"))
    assert ref.url == "https://dav.test/cal/project-7.ics"
    assert seen == [("PUT", "https://dav.test/cal/project-7.ics"), ("GET", "https://dav.test/cal/project-7.ics")]


def test_caldav_error_is_reported():
    def handler(request):
        return httpx.Response(403, text="Forbidden")

    sync = CalDavCalendarSync("https://dav.test/cal/", "me", "pw", http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(CalendarSyncError):
        sync.upsert_event(event_for_project(sample_project(), "Marie"))


def test_adapter_selection():
    bare = Settings(GOOGLE_CLIENT_ID="id", GOOGLE_CLIENT_SECRET="secret")
    assert calendar_sync_for(bare, AccountSettings(google_refresh_token=None)) is None
    assert isinstance(calendar_sync_for(bare, AccountSettings(google_refresh_token="r")), GoogleCalendarSync)

    dav = Settings(
        ICLOUD_CALDAV_CALENDAR_URL="https://dav.test/cal/",
        ICLOUD_CALDAV_USER="me",
        ICLOUD_CALDAV_PASS="pw",
    )
    assert isinstance(calendar_sync_for(dav, AccountSettings(google_refresh_token="r")), CalDavCalendarSync)


def test_caldav_unreachable_server_is_reported():
    def refuse(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    sync = CalDavCalendarSync("https://dav.test/cal", "me", "pw", http=httpx.Client(transport=httpx.MockTransport(refuse)))
    with pytest.raises(CalendarSyncError, match="CalDAV: serveur injoignable"):
        sync.upsert_event(event_for_project(sample_project(), "Marie"))


def test_google_token_response_without_access_token():
    def handler(request):
        return httpx.Response(200, json={"error": "invalid_grant"})

    sync = GoogleCalendarSync("id", "secret", "refresh", http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(CalendarSyncError, match="réponse de jeton invalide"):
        sync.upsert_event(event_for_project(sample_project(), "Marie"))


def test_owned_http_client_is_closed_after_push(monkeypatch, db_session, catalog):
    real_client = httpx.Client
    created = []

    def handler(request):
        return httpx.Response(201 if request.method == "PUT" else 200)

    def recording_client(**kwargs):
        http = real_client(transport=httpx.MockTransport(handler), **kwargs)
        created.append(http)
        return http

    monkeypatch.setattr(httpx, "Client", recording_client)
    cfg = Settings(
        ICLOUD_CALDAV_CALENDAR_URL="https://dav.test/cal/",
        ICLOUD_CALDAV_USER="me",
        ICLOUD_CALDAV_PASS="pw",
    )
    project = sample_project(id=None, user_id=catalog["client"].user_id, client_id=catalog["client"].id)
    db_session.add(project)
    db_session.commit()

    for _ in range(3):
        assert try_push_to_calendar(db_session, project, cfg) is None
    assert len(created) == 3
    assert all(http.is_closed for http in created)
    assert project.calendar_event_id == f"project-{project.id}"


def test_injected_http_client_is_left_open():
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with CalDavCalendarSync("https://dav.test/cal", "me", "pw", http=http):
        pass
    assert not http.is_closed
    http.close()


def test_exchange_code_returns_tokens():
    def handler(request):
        assert b"grant_type=authorization_code" in request.content
        return httpx.Response(200, json={"access_token": "at", "refresh_token": "rt"})

    cfg = Settings(GOOGLE_CLIENT_ID="id", GOOGLE_CLIENT_SECRET="secret")
    tokens = GoogleCalendarSync.exchange_code(cfg, "code-1", transport=httpx.MockTransport(handler))
    assert tokens["refresh_token"] == "rt"
