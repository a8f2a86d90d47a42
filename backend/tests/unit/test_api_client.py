import pytest

from app.core.config import AppConfig
from app.lib import api_client


def _config(url="https://proj.supabase.co", service="service-key", anon=""):
    return AppConfig(
        env="development",
        is_staging=False,
        supabase_url=url,
        supabase_key=service,
        supabase_anon_key=anon,
    )


@pytest.mark.unit
def test_client_is_created_on_first_use(monkeypatch):
    created = []

    class _Client:
        def table(self, name):
            return f"table:{name}"

    def fake_create(url, key):
        created.append((url, key))
        return _Client()

    monkeypatch.setattr(api_client, "create_client", fake_create)
    lazy = api_client.LazyClient(
        "admin", api_client._service_key, missing_key_hint="SUPABASE_SERVICE_ROLE_KEY", config=_config()
    )
    assert created == []
    assert lazy.table("articles") == "table:articles"
    assert lazy.table("user_roles") == "table:user_roles"
    assert created == [("https://proj.supabase.co", "service-key")]

    lazy.reset()
    lazy.table("articles")
    assert len(created) == 2


@pytest.mark.unit
def test_missing_configuration_fails_on_access(monkeypatch):
    monkeypatch.setattr(api_client, "create_client", lambda url, key: pytest.fail("should not connect"))

    no_url = api_client.LazyClient("x", api_client._service_key, missing_key_hint="K", config=_config(url=""))
    with pytest.raises(RuntimeError, match="SUPABASE_URL is required"):
        no_url.table("articles")

    no_key = api_client.LazyClient(
        "x", api_client._anon_key, missing_key_hint="SUPABASE_ANON_KEY", config=_config(anon="")
    )
    with pytest.raises(RuntimeError, match="SUPABASE_ANON_KEY is required"):
        no_key.auth


@pytest.mark.unit
def test_service_key_falls_back_to_anon_key():
    assert api_client._service_key(_config(service="", anon="anon")) == "anon"
    assert api_client._service_key(_config(service="svc", anon="anon")) == "svc"
