import json
import os

import pytest

from supercar_shop_server.auth import AuthManager
from supercar_shop_server.config import DEFAULT_API_URL, Settings
from supercar_shop_server.errors import OutOfStock, Unauthenticated
from supercar_shop_server.models import normalize_id, record_id


def test_defaults(monkeypatch):
    for name in list(os.environ):
        if name.startswith("SUPERCAR_SHOP_"):
            monkeypatch.delenv(name)

    settings = Settings.from_env()
    assert settings.api_base_url == DEFAULT_API_URL
    assert settings.backend == "api"
    assert settings.page_size == 6
    assert settings.max_quantity_per_product == 2
    assert settings.low_stock_threshold == 5
    assert settings.credentials is None


def test_from_env(monkeypatch):
    monkeypatch.setenv("SUPERCAR_SHOP_BACKEND", "local")
    monkeypatch.setenv("SUPERCAR_SHOP_PAGE_SIZE", "10")
    monkeypatch.setenv("SUPERCAR_SHOP_EMAIL", "driver@example.com")
    monkeypatch.setenv("SUPERCAR_SHOP_PASSWORD", "secret")

    settings = Settings.from_env()
    assert settings.backend == "local"
    assert settings.page_size == 10
    assert settings.credentials.email == "driver@example.com"


@pytest.mark.parametrize("name,value", [("SUPERCAR_SHOP_BACKEND", "ftp"), ("SUPERCAR_SHOP_PAGE_SIZE", "0")])
def test_invalid_env(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        Settings.from_env()


def test_session_roundtrip(tmp_path):
    session_file = str(tmp_path / "session.json")
    auth = AuthManager(session_file=session_file)
    assert not auth.is_authenticated()
    assert auth.current_user_id is None

    auth.save_session(user_id="42", token="t", user_email="a@b.c")
    assert oct(os.stat(session_file).st_mode & 0o777) == "0o600"

    reloaded = AuthManager(session_file=session_file)
    assert reloaded.current_user_id == "42"
    assert reloaded.get_token() == "t"

    reloaded.clear_session()
    assert not os.path.exists(session_file)
    assert not reloaded.is_authenticated()


def test_corrupt_session_file_starts_fresh(tmp_path):
    session_file = tmp_path / "session.json"
    session_file.write_text("{not json")
    assert not AuthManager(session_file=str(session_file)).is_authenticated()

    session_file.write_text(json.dumps({"is_authenticated": True}))
    # a session without a user id is not a session
    assert not AuthManager(session_file=str(session_file)).is_authenticated()


def test_ids_are_strings():
    assert normalize_id(12) == "12"
    assert normalize_id(None) == ""
    assert record_id({"_id": "abc"}) == "abc"
    assert record_id({"id": 3, "_id": "x"}) == "3"
    assert record_id({"cart_id": 7}, "id", "cart_id") == "7"
    assert record_id({}) == ""


def test_error_payloads():
    error = OutOfStock("p1", available=1, requested=2, applied_quantity=1)
    assert error.to_dict() == {
        "kind": "out_of_stock",
        "product_id": "p1",
        "available": 1,
        "requested": 2,
        "applied_quantity": 1,
    }
    assert Unauthenticated().to_dict() == {"kind": "unauthenticated"}
