import pytest

from para_client.exceptions import (
    ParaAccessDeniedError,
    ParaClientError,
    ParaError,
    ParaInvalidRequestError,
    ParaNotFoundError,
    ParaServerError,
)


def test_para_error_base():
    error = ParaError("Test error")
    assert str(error) == "Test error"
    assert error.message == "Test error"
    assert error.status_code is None
    assert error.error_code is None
    assert error.payload is None


def test_para_error_with_status_code():
    error = ParaError("Test error", status_code=500)
    assert str(error) == "HTTP 500: Test error"


def test_para_error_with_error_code():
    error = ParaError("Test error", status_code=409, error_code="409")
    assert str(error) == "409 (409): Test error"


def test_para_client_and_server_errors():
    assert isinstance(ParaClientError("x", status_code=400), ParaError)
    assert isinstance(ParaServerError("x", status_code=500), ParaError)
    assert str(ParaServerError("Server error", status_code=502)) == (
        "HTTP 502: Server error"
    )


def test_para_not_found_error():
    error = ParaNotFoundError()
    assert isinstance(error, ParaClientError)
    assert error.status_code == 404
    assert "not found" in str(error).lower()


def test_para_access_denied_error():
    error = ParaAccessDeniedError(status_code=401, payload={"code": 401})
    assert isinstance(error, ParaClientError)
    assert error.status_code == 401
    assert error.payload == {"code": 401}
    assert ParaAccessDeniedError().status_code == 403


def test_para_invalid_request_error():
    error = ParaInvalidRequestError("Bad field")
    assert error.status_code == 400
    assert str(error) == "HTTP 400: Bad field"


def test_exception_hierarchy_catching():
    with pytest.raises(ParaError):
        raise ParaNotFoundError()

    with pytest.raises(ParaClientError):
        raise ParaAccessDeniedError()
