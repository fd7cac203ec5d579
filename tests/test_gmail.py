"""
Tests for the Gmail inbox fetcher.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from integrations import gmail as gmail_api
from integrations.errors import AuthExpiredError


def _http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b"{}")


def _message(msg_id: str, labels=("INBOX", "UNREAD")) -> dict:
    return {
        "id": msg_id,
        "snippet": "Hello there",
        "labelIds": list(labels),
        "internalDate": "1700000000000",
        "payload": {"headers": [
            {"name": "Subject", "value": f"Subject {msg_id}"},
            {"name": "From", "value": '"Mona Lisa" <mona@example.com>'},
            {"name": "Date", "value": "Tue, 14 Nov 2023 22:13:20 +0000"},
        ]},
    }


def _service(ids, messages) -> MagicMock:
    service = MagicMock()
    msgs = service.users.return_value.messages.return_value
    msgs.list.return_value.execute.return_value = {"messages": [{"id": i} for i in ids]}

    def get(userId, id, **kwargs):
        request = MagicMock()
        outcome = messages[id]
        if isinstance(outcome, Exception):
            request.execute.side_effect = outcome
        else:
            request.execute.return_value = outcome
        return request

    msgs.get.side_effect = get
    return service


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('"Mona Lisa" <mona@example.com>', {"name": "Mona Lisa", "email": "mona@example.com"}),
        ("<bot@example.com>", {"name": "bot@example.com", "email": "bot@example.com"}),
        ("plain@example.com", {"name": "plain@example.com", "email": "plain@example.com"}),
    ],
)
def test_parse_sender(raw, expected):
    assert gmail_api.parse_sender(raw) == expected


def test_shape_message():
    shaped = gmail_api.shape_message(_message("m1", labels=("INBOX", "IMPORTANT")))

    assert shaped == {
        "id": "m1",
        "subject": "Subject m1",
        "from": {"name": "Mona Lisa", "email": "mona@example.com"},
        "snippet": "Hello there",
        "date": "2023-11-14T22:13:20+00:00",
        "isRead": True,
        "isImportant": True,
    }


def test_shape_message_falls_back_to_internal_date():
    msg = _message("m1")
    msg["payload"]["headers"] = [h for h in msg["payload"]["headers"] if h["name"] != "Date"]

    assert gmail_api.shape_message(msg)["date"] == "2023-11-14T22:13:20+00:00"


@pytest.mark.asyncio
async def test_list_inbox_keeps_order_and_limit():
    service = _service(["a", "b"], {"a": _message("a"), "b": _message("b")})

    emails = await gmail_api.list_inbox(service, limit=2)

    assert [e["id"] for e in emails] == ["a", "b"]
    assert emails[0]["isRead"] is False
    list_call = service.users.return_value.messages.return_value.list.call_args
    assert list_call.kwargs["maxResults"] == 2


@pytest.mark.asyncio
async def test_list_inbox_skips_broken_message():
    service = _service(["a", "b"], {"a": _http_error(404), "b": _message("b")})

    emails = await gmail_api.list_inbox(service)

    assert [e["id"] for e in emails] == ["b"]


@pytest.mark.asyncio
async def test_list_inbox_unauthorized_propagates():
    service = _service(["a"], {"a": _http_error(401)})

    with pytest.raises(AuthExpiredError):
        await gmail_api.list_inbox(service)
