import pytest
from pydantic import ValidationError

from src.utils.contracts_config_loader import ContractsConfig, load_contracts_config


def test_bundled_config_loads():
    cfg = load_contracts_config()
    assert cfg.company_name == "Speak About AI"
    assert cfg.templates.virtual.event_timezone == "PST"
    assert cfg.templates.travel.booking_responsibility == "Client to book and pay directly"


def test_env_path_override(tmp_path, monkeypatch):
    path = tmp_path / "contracts.yml"
    path.write_text("public_base_url: https://sign.example.org/\nexpiry_days: 30\n", encoding="utf-8")
    monkeypatch.setenv("CONTRACTS_CONFIG_PATH", str(path))

    cfg = load_contracts_config()
    assert cfg.expiry_days == 30
    assert cfg.view_link("tok") == "https://sign.example.org/contracts/view/tok"


def test_missing_file_falls_back_to_defaults(tmp_path):
    assert load_contracts_config(tmp_path / "absent.yml") == ContractsConfig()


def test_short_tokens_rejected(tmp_path):
    path = tmp_path / "contracts.yml"
    path.write_text("token_length: 16\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_contracts_config(path)
