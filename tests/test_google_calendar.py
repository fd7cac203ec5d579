"""
Tests for the Google Calendar day view against a fake discovery service.
"""

from datetime import date, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest

from integrations import google_calendar as calendar_api
from integrations.errors import AuthExpiredError
from integrations.google_api import build_service, own_transport


def _http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b"{}")


def _request(result=None, error=None) -> MagicMock:
    request = MagicMock()
    if error is not None:
        request.execute.side_effect = error
    else:
        request.execute.return_value = result
    return request


def _service(calendars, events_by_calendar) -> MagicMock:
    service = MagicMock()
    service.calendarList.return_value.list.return_value = _request({"items": calendars})

    def events_list(calendarId, **kwargs):
        outcome = events_by_calendar[calendarId]
        if isinstance(outcome, Exception):
            return _request(error=outcome)
        return _request({"items": outcome})

    service.events.return_value.list.side_effect = events_list
    return service


def test_day_bounds_utc():
    assert calendar_api.day_bounds(date(2026, 10, 18)) == (
        "2026-10-18T00:00:00+00:00",
        "2026-10-19T00:00:00+00:00",
    )


def test_day_bounds_with_offset():
    tz = timezone(timedelta(hours=2))
    assert calendar_api.day_bounds(date(2026, 10, 18), tz)[0] == "2026-10-18T00:00:00+02:00"


def test_shape_event_defaults():
    shaped = calendar_api.shape_event(
        {"id": "e1", "start": {"date": "2026-10-18"}, "end": {"date": "2026-10-19"}},
        {"id": "primary", "backgroundColor": "#9fe1e7"},
    )
    assert shaped["title"] == "(No title)"
    assert shaped["isAllDay"] is True
    assert shaped["color"] == "#9fe1e7"
    assert shaped["calendarId"] == "primary"


@pytest.mark.asyncio
async def test_events_merged_across_calendars_and_sorted():
    calendars = [
        {"id": "primary", "backgroundColor": "#111111"},
        {"id": "team", "backgroundColor": "#222222"},
        {"id": "hidden", "hidden": True},
    ]
    events = {
        "primary": [
            {"id": "late", "summary": "Review", "start": {"dateTime": "2026-10-18T15:00:00Z"},
             "end": {"dateTime": "2026-10-18T16:00:00Z"}},
            {"id": "gone", "status": "cancelled", "start": {"dateTime": "2026-10-18T09:00:00Z"}},
        ],
        "team": [
            {"id": "early", "summary": "Standup", "start": {"dateTime": "2026-10-18T09:30:00+00:00"},
             "end": {"dateTime": "2026-10-18T09:45:00+00:00"}},
            {"id": "allday", "summary": "Offsite", "start": {"date": "2026-10-18"},
             "end": {"date": "2026-10-19"}},
        ],
    }
    service = _service(calendars, events)

    result = await calendar_api.list_events_for_day(service, date(2026, 10, 18))

    assert [e["id"] for e in result] == ["allday", "early", "late"]
    assert result[1]["color"] == "#222222"
    called = [c.kwargs["calendarId"] for c in service.events.return_value.list.call_args_list]
    assert sorted(called) == ["primary", "team"]


@pytest.mark.asyncio
async def test_failing_calendar_is_skipped():
    calendars = [{"id": "primary"}, {"id": "broken"}]
    events = {
        "primary": [{"id": "e1", "summary": "Lunch", "start": {"dateTime": "2026-10-18T12:00:00Z"}}],
        "broken": _http_error(404),
    }

    result = await calendar_api.list_events_for_day(_service(calendars, events), date(2026, 10, 18))

    assert [e["id"] for e in result] == ["e1"]


@pytest.mark.asyncio
async def test_calendar_list_unauthorized_propagates():
    service = MagicMock()
    service.calendarList.return_value.list.return_value = _request(error=_http_error(401))

    with pytest.raises(AuthExpiredError):
        await calendar_api.list_events_for_day(service, date(2026, 10, 18))


def test_own_transport_carries_request_credentials():
    shared = AuthorizedHttp(Credentials(token="tok"))
    request = SimpleNamespace(http=shared)

    first = own_transport(request)
    second = own_transport(request)

    assert first.credentials is shared.credentials
    assert first is not shared and first is not second
    assert first.http is not shared.http and first.http is not second.http


@pytest.mark.asyncio
async def test_concurrent_calendar_requests_use_separate_transports():
    service = await build_service("calendar", "v3", "tok")
    used = []

    def fake_execute(request, http=None, num_retries=0):
        used.append((request.uri, request.http, http))
        if "/calendarList" in request.uri:
            return {"items": [{"id": "a"}, {"id": "b"}, {"id": "c"}]}
        return {"items": []}

    with patch.object(HttpRequest, "execute", autospec=True, side_effect=fake_execute):
        await calendar_api.list_events_for_day(service, date(2026, 10, 18))

    event_calls = [(shared, own) for uri, shared, own in used if "/events" in uri]
    assert len(event_calls) == 3
    transports = [own for _, own in event_calls]
    assert len({id(t) for t in transports}) == 3
    assert len({id(t.http) for t in transports}) == 3
    for shared, own in event_calls:
        assert isinstance(own, AuthorizedHttp)
        assert own is not shared
        assert own.http is not shared.http
        assert own.credentials.token == "tok"
