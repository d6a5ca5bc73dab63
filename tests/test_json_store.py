import json

import pytest

import storage.json_store as js


def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "storage.json"
    store = js.JsonFileStore(path)
    assert store.get(js.CURRENCY_KEY) is None

    store.set(js.CURRENCY_KEY, "EUR")
    store.set(js.PORTFOLIO_KEY, "[]")

    again = js.JsonFileStore(path)
    assert again.get(js.CURRENCY_KEY) == "EUR"
    assert again.get(js.PORTFOLIO_KEY) == "[]"
    assert json.loads(path.read_text(encoding="utf-8")) == {"preferredCurrency": "EUR", "cryptoPortfolio": "[]"}

    again.remove(js.CURRENCY_KEY)
    assert js.JsonFileStore(path).get(js.CURRENCY_KEY) is None


def test_file_store_uses_default_path(tmp_path, monkeypatch):
    monkeypatch.setattr(js, "STORE_PATH", str(tmp_path / "kv.json"))
    js.JsonFileStore().set("k", "v")
    assert (tmp_path / "kv.json").exists()


def test_corrupt_store_file_starts_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{oops", encoding="utf-8")
    assert js.JsonFileStore(path).get(js.PORTFOLIO_KEY) is None


def test_no_temp_files_left_behind(tmp_path):
    store = js.JsonFileStore(tmp_path / "storage.json")
    for i in range(3):
        store.set("n", str(i))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["storage.json"]


def test_config_defaults_and_roundtrip(tmp_path, monkeypatch):
    monkeypatch.setattr(js, "CONFIG_PATH", str(tmp_path / "config.json"))
    assert js.read_config() == js.DEFAULT_CONFIG

    js.ensure_config_exists()
    cfg = js.read_config()
    cfg["per_page"] = 50
    cfg["junk"] = True
    js.write_config(cfg)

    on_disk = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert on_disk == {"update_interval_sec": 600, "rates_refresh_sec": 1800, "per_page": 50}


@pytest.mark.parametrize("key,value", [
    ("update_interval_sec", "10"),
    ("per_page", "500"),
    ("rates_refresh_sec", "soon"),
    ("vs_currency", "usd"),
])
def test_config_validation_rejects(key, value):
    with pytest.raises(ValueError):
        js.validate_config_value(key, value)


def test_config_validation_accepts():
    assert js.validate_config_value("per_page", "250") == 250
