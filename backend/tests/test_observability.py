"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import importlib


def test_app_import_succeeds_when_opik_is_disabled(monkeypatch) -> None:
    monkeypatch.setenv("OPIK_ENABLED", "false")
    monkeypatch.delenv("OPIK_API_KEY", raising=False)

    import tandem.observability.client as client_module
    import tandem.main as main_module

    reloaded_client = importlib.reload(client_module)
    reloaded_app = importlib.reload(main_module)

    assert hasattr(reloaded_app, "app")
    assert reloaded_client.init_opik() is None


def test_enabled_without_api_key_skips_client(monkeypatch) -> None:
    import tandem.observability.client as client_module

    monkeypatch.setattr(client_module.settings, "opik_enabled", True)
    monkeypatch.setattr(client_module.settings, "opik_api_key", None)
    monkeypatch.setattr(client_module, "_client", None)
    monkeypatch.setattr(client_module, "_init_attempted", False)

    assert client_module.init_opik() is None


def test_shutdown_flushes_and_resets_client(monkeypatch) -> None:
    import tandem.observability.client as client_module

    class _FlushingClient:
        flushed = False

        def flush(self) -> None:
            self.flushed = True

    fake = _FlushingClient()
    monkeypatch.setattr(client_module, "_client", fake)
    monkeypatch.setattr(client_module, "_init_attempted", True)

    client_module.shutdown_opik()

    assert fake.flushed is True
    assert client_module._client is None
    assert client_module._init_attempted is False
