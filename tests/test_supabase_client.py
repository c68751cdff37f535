from types import SimpleNamespace

import pytest

from cbse_tutor.db import supabase as supabase_module

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio("asyncio")
async def test_missing_credentials_fail_fast(monkeypatch):
    monkeypatch.setattr(supabase_module, "_client", None)
    monkeypatch.setattr(supabase_module, "get_settings", lambda: SimpleNamespace(supabase_url="", supabase_key=""))

    with pytest.raises(supabase_module.SupabaseNotConfiguredError):
        await supabase_module.get_supabase()


@pytest.mark.anyio("asyncio")
async def test_client_is_created_once(monkeypatch):
    created = []

    async def fake_create(url, key):
        created.append((url, key))
        return object()

    monkeypatch.setattr(supabase_module, "_client", None)
    monkeypatch.setattr(supabase_module, "create_async_client", fake_create)
    monkeypatch.setattr(
        supabase_module,
        "get_settings",
        lambda: SimpleNamespace(supabase_url="https://demo.supabase.co", supabase_key="anon"),
    )

    first = await supabase_module.get_supabase()
    second = await supabase_module.get_supabase()

    assert first is second
    assert created == [("https://demo.supabase.co", "anon")]
