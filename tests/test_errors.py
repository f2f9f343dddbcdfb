import pytest

from errors import (
    BelowMinimumError,
    BillingError,
    ExceedsContractError,
    GatewayError,
    InsufficientCreditError,
    InvalidStateError,
    MissingProofError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.parametrize("error, status", [
    (ValidationError, 422),
    (BelowMinimumError, 422),
    (ExceedsContractError, 422),
    (MissingProofError, 422),
    (InvalidStateError, 409),
    (InsufficientCreditError, 409),
    (NotFoundError, 404),
    (GatewayError, 502),
])
def test_error_status(error, status):
    assert issubclass(error, BillingError)
    assert error.http_status == status


def test_message_defaults_to_code():
    assert BelowMinimumError().message == "below_minimum"
    assert str(NotFoundError("Bill 4 not found")) == "Bill 4 not found"
