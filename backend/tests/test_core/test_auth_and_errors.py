"""
Tests for token handling and the error taxonomy

Author: StoreSync
"""
import time

import pytest
from fastapi import HTTPException
from jose import jwt

from storesync.core.auth import decode_access_token, require_tenant
from storesync.core.config import settings
from storesync.core.exceptions import (
    CorruptLocalStateError,
    NotAuthenticatedError,
    StoreValidationError,
    SyncInProgressError,
    TransientStoreError,
)


@pytest.fixture
def secret(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_SECRET", "unit-test-secret")
    return "unit-test-secret"


def test_decode_valid_token(secret):
    token = jwt.encode({"sub": "tenant-1", "exp": int(time.time()) + 60}, secret, algorithm="HS256")

    assert decode_access_token(token)["sub"] == "tenant-1"


def test_decode_garbage_token(secret):
    with pytest.raises(HTTPException) as exc_info:
        decode_access_token("not-a-jwt")

    assert exc_info.value.status_code == 401


def test_missing_secret_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_SECRET", "")

    with pytest.raises(ValueError):
        decode_access_token("anything")


@pytest.mark.parametrize("tenant", [None, "", "   "])
def test_require_tenant_rejects_blank(tenant):
    with pytest.raises(NotAuthenticatedError):
        require_tenant(tenant)


def test_require_tenant_returns_id():
    assert require_tenant("tenant-1") == "tenant-1"


@pytest.mark.parametrize("error, status, retryable", [
    (TransientStoreError("down"), 503, True),
    (StoreValidationError("bad"), 422, False),
    (NotAuthenticatedError(), 401, False),
    (SyncInProgressError("tenant-1"), 409, False),
    (CorruptLocalStateError("orders", "bad json"), 500, False),
])
def test_error_status_codes(error, status, retryable):
    assert error.status_code == status
    assert error.retryable is retryable
    assert error.to_dict()['retryable'] is retryable


def test_to_dict_merges_payload():
    error = StoreValidationError("Invalid order", payload={'serial': '1001'})

    assert error.to_dict() == {
        'serial': '1001', 'message': 'Invalid order', 'status': 'error', 'retryable': False,
    }
