import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config loader at a per-test file so the repo config is never touched."""
    path = tmp_path / "config" / "config.json"
    monkeypatch.setenv("MODTRANSLATOR_CONFIG", str(path))
    return path
