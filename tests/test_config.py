from pathlib import Path

import pytest

from logistics_hub.config import Config, ConfigError, get_config, reset_config_cache


def _base_env(tmp_path: Path) -> dict[str, str]:
    return {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}",
        "SUPABASE_JWT_SECRET": "jwt-secret",
        "REPORTS_ROOT": str(tmp_path / "reports"),
        "STORAGE_ROOT": str(tmp_path / "storage"),
        "STORAGE_PUBLIC_URL": "https://cdn.example.test/public/",
    }


def test_config_loads_expected_values(tmp_path):
    env = _base_env(tmp_path)
    env.update(
        {
            "CORS_ALLOW_ORIGINS": "https://a.example, https://b.example\nhttps://c.example",
            "HTTP_TIMEOUT_SECONDS": " 20 ",
            "PAYMONGO_SECRET_KEY": " sk_test_abc ",
            "LALAMOVE_BASE_URL": "https://rest.lalamove.com/",
        }
    )

    cfg = Config.from_mapping(env)

    assert cfg.storage_public_url == "https://cdn.example.test/public"
    assert cfg.cors_allow_origins == ("https://a.example", "https://b.example", "https://c.example")
    assert cfg.http_timeout_seconds == 20
    assert cfg.paymongo_secret_key == "sk_test_abc"
    assert cfg.lalamove_base_url == "https://rest.lalamove.com"
    assert cfg.lalamove_market == "PH"
    assert cfg.pipeline_timezone == "Asia/Manila"
    assert cfg.mapbox_public_token == ""


def test_missing_env_variable_raises(tmp_path):
    env = _base_env(tmp_path)
    del env["SUPABASE_JWT_SECRET"]

    with pytest.raises(ConfigError, match="SUPABASE_JWT_SECRET"):
        Config.from_mapping(env)


def test_blank_required_variable_raises(tmp_path):
    env = _base_env(tmp_path)
    env["REPORTS_ROOT"] = "   "

    with pytest.raises(ConfigError, match="cannot be blank"):
        Config.from_mapping(env)


def test_invalid_integer_value(tmp_path):
    env = _base_env(tmp_path)
    env["HTTP_TIMEOUT_SECONDS"] = "soon"

    with pytest.raises(ConfigError, match="HTTP_TIMEOUT_SECONDS"):
        Config.from_mapping(env)


def test_get_config_reads_environment_once(monkeypatch, tmp_path):
    for key, value in _base_env(tmp_path).items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("RUN_ENV", "prod")
    reset_config_cache()
    try:
        first = get_config()
        monkeypatch.setenv("RUN_ENV", "dev")
        assert get_config() is first
        assert first.run_env == "prod"
    finally:
        reset_config_cache()


def test_os_getenv_usage_restricted():
    package_root = Path(__file__).resolve().parents[1] / "logistics_hub"
    allowed = {package_root / "config.py"}
    offenders: list[Path] = []
    for path in package_root.rglob("*.py"):
        if path in allowed:
            continue
        text = path.read_text(encoding="utf-8")
        if "os.getenv" in text or "os.environ" in text:
            offenders.append(path)
    assert offenders == []
