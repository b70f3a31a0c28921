import httpx
import pytest
from pydantic import ValidationError

from boss_client.errors import BossError, HttpError, StatusClass, classify_status
from boss_client.settings import ExecutorSettings
from boss_client.shared.cancellation import OperationCancelled


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (200, StatusClass.SUCCESS),
        (204, StatusClass.SUCCESS),
        (299, StatusClass.SUCCESS),
        (401, StatusClass.REFRESH),
        (403, StatusClass.REFRESH),
        (504, StatusClass.RETRY),
        (199, StatusClass.FAILURE),
        (300, StatusClass.FAILURE),
        (404, StatusClass.FAILURE),
        (500, StatusClass.FAILURE),
        (503, StatusClass.FAILURE),
    ],
)
def test_classify_status(status_code, expected):
    assert classify_status(status_code) is expected


def test_http_error_from_response():
    request = httpx.Request("GET", "https://api.theboss.io/v1/ping")
    response = httpx.Response(500, content=b"boom", request=request)

    error = HttpError.from_response(response)

    assert isinstance(error, BossError)
    assert error.url == "https://api.theboss.io/v1/ping"
    assert error.status_code == 500
    assert error.reason == "Internal Server Error"
    assert error.body == b"boom"
    assert str(error) == "Fetching 'https://api.theboss.io/v1/ping' resulted in HTTP error 500: Internal Server Error"


def test_http_error_without_reason():
    assert str(HttpError("https://x/y", 599)) == "Fetching 'https://x/y' resulted in HTTP error 599"


def test_cancellation_is_not_a_failure():
    assert not issubclass(OperationCancelled, BossError)


def test_settings_defaults_and_validation():
    settings = ExecutorSettings()
    assert settings.max_attempts is None
    assert settings.timeout == 30.0

    with pytest.raises(ValidationError):
        ExecutorSettings(max_attempts=0)
    with pytest.raises(ValidationError):
        ExecutorSettings(timeout=0)
