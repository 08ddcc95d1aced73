from __future__ import annotations

import httplib2
import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from googleapiclient.errors import HttpError

from src.backend.common.models.errors import (
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    TabNotFoundError,
    TransportError,
)
from src.backend.dashboard.integrations.google_sheets_client import (
    GoogleSheetsClient,
    classify_http_error,
    col_to_a1,
    extract_sheet_id,
    quote_tab,
)


def test_col_to_a1() -> None:
    assert col_to_a1(0) == "A"
    assert col_to_a1(13) == "N"
    assert col_to_a1(14) == "O"
    assert col_to_a1(25) == "Z"
    assert col_to_a1(26) == "AA"
    assert col_to_a1(27) == "AB"
    with pytest.raises(ValueError):
        col_to_a1(-1)


def test_quote_tab_escapes_apostrophes() -> None:
    assert quote_tab("All Current Violations") == "'All Current Violations'"
    assert quote_tab("Bob's Tab") == "'Bob''s Tab'"


def test_extract_sheet_id() -> None:
    url = "https://docs.google.com/spreadsheets/d/1AbC-d_EF/edit#gid=0"
    assert extract_sheet_id(url) == "1AbC-d_EF"
    assert extract_sheet_id("not a sheet") is None
    assert extract_sheet_id("") is None
    assert extract_sheet_id(None) is None


def test_classify_http_error() -> None:
    assert isinstance(classify_http_error(429, "quota"), RateLimitedError)
    missing = classify_http_error(
        400, "Unable to parse range: 'Open Violations'!A1:A1", tab_name="Open Violations"
    )
    assert isinstance(missing, TabNotFoundError)
    assert missing.tab_name == "Open Violations"
    assert isinstance(classify_http_error(403, "caller lacks permission"), ForbiddenError)

    not_found = classify_http_error(404, "Requested entity was not found")
    assert isinstance(not_found, NotFoundError)
    assert not isinstance(not_found, TabNotFoundError)

    assert isinstance(classify_http_error(400, "Invalid value"), TransportError)
    assert isinstance(classify_http_error(500, "backend error"), TransportError)


class _FakeRequest:
    def __init__(self, exc: Exception | None = None, payload: dict | None = None) -> None:
        self.exc = exc
        self.payload = payload or {}
        self.num_retries: int | None = None

    def execute(self, num_retries: int = 0):
        self.num_retries = num_retries
        if self.exc is not None:
            raise self.exc
        return self.payload


def _http_error(status: int, message: str) -> HttpError:
    content = ('{"error": {"code": %d, "message": "%s"}}' % (status, message)).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), content)


def test_execute_passes_retries_and_returns_payload() -> None:
    client = GoogleSheetsClient(service_account_info={}, num_retries=4)
    req = _FakeRequest(payload={"values": [["a"]]})

    assert client._execute(req) == {"values": [["a"]]}
    assert req.num_retries == 4


def test_execute_classifies_http_errors() -> None:
    client = GoogleSheetsClient(service_account_info={})

    with pytest.raises(TabNotFoundError):
        client._execute(
            _FakeRequest(_http_error(400, "Unable to parse range: Missing!A1:A1")),
            tab_name="Missing",
        )
    with pytest.raises(RateLimitedError):
        client._execute(_FakeRequest(_http_error(429, "Quota exceeded")))


def test_execute_maps_socket_failures_to_transport() -> None:
    client = GoogleSheetsClient(service_account_info={})

    with pytest.raises(TransportError):
        client._execute(_FakeRequest(TimeoutError("timed out")))
    with pytest.raises(TransportError):
        client._execute(_FakeRequest(httplib2.ServerNotFoundError("no dns")))


def test_execute_maps_rejected_credentials_to_transport() -> None:
    client = GoogleSheetsClient(service_account_info={})

    with pytest.raises(TransportError, match="credentials rejected"):
        client._execute(_FakeRequest(RefreshError("invalid_grant: Invalid JWT Signature.")))
    with pytest.raises(TransportError):
        client._execute(_FakeRequest(DefaultCredentialsError("no key")))


def test_client_requires_credentials() -> None:
    with pytest.raises(ValueError):
        GoogleSheetsClient()


def test_delete_row_refuses_header() -> None:
    client = GoogleSheetsClient(service_account_info={})
    with pytest.raises(ValueError):
        client.delete_row("sheet", "All Current Violations", 1)
