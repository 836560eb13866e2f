"""
Calendar sync for project due dates.

One capability, two adapters: Google Calendar (OAuth refresh token, REST v3)
and CalDAV (iCloud and friends, one .ics resource per project). Sync is
best-effort: callers log failures and carry on.
"""
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional
from urllib.parse import urlencode, quote

import httpx

from ..config import Settings
from ..models.models import AccountSettings, Project


CALENDAR_TZ = "Europe/Paris"
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
GOOGLE_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]

EVENT_START = time(8, 0)
EVENT_END = time(9, 0)


class CalendarSyncError(Exception):
    pass


@dataclass
class CalendarEvent:
    uid: str
    title: str
    start: datetime
    end: datetime
    description: str
    location: str = "Chantier"
    external_id: Optional[str] = None


@dataclass
class EventRef:
    id: Optional[str]
    url: str


def project_description_lines(project: Project, client_name: Optional[str]) -> list:
    lines = [f"Client: {client_name or ''}", f"Statut: {project.status}"]
    if project.responsible:
        lines.append(f"Responsable: {project.responsible}")
    if project.comment:
        lines.append(f"Commentaire: {project.comment}")
    return lines


def event_for_project(project: Project, client_name: Optional[str]) -> CalendarEvent:
    return CalendarEvent(
        uid=f"project-{project.id}@plombicrm",
        title=f"Chantier - {project.name}",
        start=datetime.combine(project.due_date, EVENT_START),
        end=datetime.combine(project.due_date, EVENT_END),
        description="\n".join(project_description_lines(project, client_name)),
        external_id=project.calendar_event_id,
    )


def _ics_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def build_ics(event: CalendarEvent, now: Optional[datetime] = None) -> str:
    """Single-event VCALENDAR with CRLF line endings."""
    now = now or datetime.utcnow()
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//PlombiCRM//FR",
        "CALSCALE:GREGORIAN",
        f"X-WR-TIMEZONE:{CALENDAR_TZ}",
        "BEGIN:VEVENT",
        f"UID:{event.uid}",
        f"DTSTAMP:{now.strftime('%Y%m%dT%H%M%S')}Z",
        f"DTSTART;TZID={CALENDAR_TZ}:{event.start.strftime('%Y%m%dT%H%M%S')}",
        f"DTEND;TZID={CALENDAR_TZ}:{event.end.strftime('%Y%m%dT%H%M%S')}",
        f"SUMMARY:{_ics_text(event.title)}",
        "STATUS:CONFIRMED",
        "TRANSP:OPAQUE",
        f"DESCRIPTION:{_ics_text(event.description)}",
        f"LOCATION:{_ics_text(event.location)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


class CalendarSync:
    """Base adapter. Closes the HTTP client it created, never an injected one."""

    label = "Calendrier"

    def __init__(self, http: Optional[httpx.Client] = None):
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=30.0)

    def upsert_event(self, event: CalendarEvent) -> EventRef:
        raise NotImplementedError

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise CalendarSyncError(f"{self.label}: serveur injoignable ({e.__class__.__name__}).") from e

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class GoogleCalendarSync(CalendarSync):
    """Google Calendar v3 over plain REST."""

    label = "Google Calendar"

    def __init__(self, client_id: str, client_secret: str, refresh_token: str,
                 calendar_id: str = "primary", http: Optional[httpx.Client] = None):
        if not client_id or not client_secret:
            raise CalendarSyncError("Google Calendar: identifiants non configurés.")
        if not refresh_token:
            raise CalendarSyncError("Google Calendar non connecté.")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id or "primary"
        super().__init__(http)

    @staticmethod
    def authorization_url(cfg: Settings, state: str) -> str:
        if not cfg.google_client_id or not cfg.google_client_secret:
            raise CalendarSyncError("Google Calendar: identifiants non configurés.")
        params = {
            "client_id": cfg.google_client_id,
            "redirect_uri": google_redirect_uri(cfg),
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    @staticmethod
    def exchange_code(cfg: Settings, code: str, transport: Optional[httpx.BaseTransport] = None) -> dict:
        with httpx.Client(timeout=30.0, transport=transport) as client:
            response = client.post(GOOGLE_TOKEN_URL, data={
                "code": code,
                "client_id": cfg.google_client_id,
                "client_secret": cfg.google_client_secret,
                "redirect_uri": google_redirect_uri(cfg),
                "grant_type": "authorization_code",
            })
            response.raise_for_status()
            return response.json()

    def _access_token(self) -> str:
        response = self._send("POST", GOOGLE_TOKEN_URL, data={
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "grant_type": "refresh_token",
        })
        if response.status_code >= 400:
            raise CalendarSyncError(f"Google Calendar: jeton refusé ({response.status_code}).")
        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise CalendarSyncError("Google Calendar: réponse de jeton invalide.")
        return token

    def _body(self, event: CalendarEvent) -> dict:
        return {
            "summary": event.title,
            "description": event.description,
            "location": event.location,
            "start": {"dateTime": event.start.isoformat(), "timeZone": CALENDAR_TZ},
            "end": {"dateTime": event.end.isoformat(), "timeZone": CALENDAR_TZ},
        }

    def upsert_event(self, event: CalendarEvent) -> EventRef:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        base = GOOGLE_EVENTS_URL.format(calendar_id=quote(self.calendar_id, safe=""))
        body = self._body(event)
        data = None
        if event.external_id:
            response = self._send("PUT", f"{base}/{quote(event.external_id, safe='')}", json=body, headers=headers)
            if response.status_code == 404:
                data = None  # deleted on Google's side, recreate below
            elif response.status_code >= 400:
                raise CalendarSyncError("Google Calendar: impossible de mettre à jour l'événement.")
            else:
                data = response.json()
        if data is None:
            response = self._send("POST", base, json=body, headers=headers)
            if response.status_code >= 400:
                raise CalendarSyncError(f"Google Calendar: création impossible ({response.status_code}).")
            data = response.json()
        return EventRef(id=data.get("id"), url=data.get("htmlLink") or "")


class CalDavCalendarSync(CalendarSync):
    """PUT one .ics resource per project into a known calendar collection."""

    label = "CalDAV"

    def __init__(self, calendar_url: str, username: str, password: str, http: Optional[httpx.Client] = None):
        if not calendar_url or not username or not password:
            raise CalendarSyncError("CalDAV: identifiants non configurés.")
        self.calendar_url = calendar_url.strip()
        if not self.calendar_url.endswith("/"):
            self.calendar_url += "/"
        self.auth = (username, password)
        super().__init__(http)

    def upsert_event(self, event: CalendarEvent) -> EventRef:
        resource = event.uid.split("@", 1)[0]
        event_url = f"{self.calendar_url}{resource}.ics"
        response = self._send(
            "PUT",
            event_url,
            content=build_ics(event).encode("utf-8"),
            headers={"Content-Type": "text/calendar; charset=utf-8"},
            auth=self.auth,
        )
        if response.status_code >= 400:
            raise CalendarSyncError(f"CalDAV: erreur {response.status_code}. {response.text}".strip())
        verify = self._send("GET", event_url, auth=self.auth)
        if verify.status_code >= 400:
            raise CalendarSyncError(f"CalDAV: création OK, mais lecture impossible ({verify.status_code}).")
        return EventRef(id=resource, url=event_url)


def google_redirect_uri(cfg: Settings) -> str:
    return cfg.google_redirect_uri or f"{cfg.public_base_url}/auth/google/callback"


def calendar_sync_for(cfg: Settings, account: Optional[AccountSettings]) -> Optional[CalendarSync]:
    """CalDAV when configured, else Google when the account is connected, else None."""
    if cfg.caldav_calendar_url and cfg.caldav_user and cfg.caldav_password:
        return CalDavCalendarSync(cfg.caldav_calendar_url, cfg.caldav_user, cfg.caldav_password)
    if account is not None and account.google_refresh_token:
        return GoogleCalendarSync(
            cfg.google_client_id or "",
            cfg.google_client_secret or "",
            account.google_refresh_token,
            account.google_calendar_id or "primary",
        )
    return None
