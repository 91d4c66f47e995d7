"""
Config System (config.py)

Tests ConfigLoader, SessionConfig and the session factories.
"""

import json

import pytest

from kestrel.config import ConfigError, ConfigLoader, SessionConfig
from kestrel.sessions import (
    BackendSession,
    CookieTransport,
    FileBackend,
    HeaderTransport,
    MemoryBackend,
    SessionConfigurationFault,
    create_backend,
    create_session,
    create_session_transport,
)


PREFIX = "KTEST_"


# ============================================================================
# ConfigLoader
# ============================================================================

class TestConfigLoader:

    def test_init_defaults(self):
        loader = ConfigLoader()
        assert loader.env_prefix == "KESTREL_"
        assert loader.config_data == {}

    def test_custom_prefix(self):
        assert ConfigLoader(env_prefix="APP_").env_prefix == "APP_"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sessions:\n  name: shop\n  id_expiration_interval: 300\n")
        loader = ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX)
        assert loader.get("sessions.name") == "shop"
        assert loader.get("sessions.id_expiration_interval") == 300

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"sessions": {"name": "api"}}))
        loader = ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX)
        assert loader.get("sessions.name") == "api"

    def test_glob_merges_in_order(self, tmp_path):
        (tmp_path / "a.yaml").write_text("sessions:\n  name: first\n  options:\n    gc_maxlifetime: 60\n")
        (tmp_path / "b.yaml").write_text("sessions:\n  name: second\n")
        loader = ConfigLoader.load(paths=[str(tmp_path / "*.yaml")], env_prefix=PREFIX)
        assert loader.get("sessions.name") == "second"
        assert loader.get("sessions.options.gc_maxlifetime") == 60

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX).config_data == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sessions: [unclosed\n")
        with pytest.raises(ConfigError):
            ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX)

    def test_unsupported_file_type(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("x = 1\n")
        with pytest.raises(ConfigError, match="Unsupported"):
            ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX)

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("KTEST_SESSIONS__NAME", "fromenv")
        monkeypatch.setenv("KTEST_SESSIONS__ID_EXPIRATION_INTERVAL", "900")
        monkeypatch.setenv("KTEST_SESSIONS__OPTIONS__USE_STRICT_MODE", "true")
        loader = ConfigLoader.load(env_prefix=PREFIX)
        assert loader.get("sessions.name") == "fromenv"
        assert loader.get("sessions.id_expiration_interval") == 900
        assert loader.get("sessions.options.use_strict_mode") is True

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("KTEST_SESSIONS__NAME=dotenv\nUNRELATED=1\n")
        loader = ConfigLoader.load(env_prefix=PREFIX, env_file=str(env_file))
        assert loader.get("sessions.name") == "dotenv"
        assert "unrelated" not in loader.config_data

    def test_missing_env_file(self, tmp_path):
        loader = ConfigLoader.load(env_prefix=PREFIX, env_file=str(tmp_path / "nope.env"))
        assert loader.config_data == {}

    def test_precedence(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("sessions:\n  name: file\n")
        env_file = tmp_path / ".env"
        env_file.write_text("KTEST_SESSIONS__NAME=dotenv\n")
        monkeypatch.setenv("KTEST_SESSIONS__NAME", "environ")

        loader = ConfigLoader.load(paths=[str(path)], env_prefix=PREFIX, env_file=str(env_file))
        assert loader.get("sessions.name") == "environ"

        loader = ConfigLoader.load(
            paths=[str(path)],
            env_prefix=PREFIX,
            env_file=str(env_file),
            overrides={"sessions": {"name": "override"}},
        )
        assert loader.get("sessions.name") == "override"

    @pytest.mark.parametrize("raw, parsed", [
        ("true", True),
        ("no", False),
        ("null", None),
        ("42", 42),
        ("1.5", 1.5),
        ('{"a": 1}', {"a": 1}),
        ("plain", "plain"),
    ])
    def test_parse_value(self, raw, parsed):
        assert ConfigLoader()._parse_value(raw) == parsed

    def test_get_default(self):
        loader = ConfigLoader()
        assert loader.get("sessions.name", "dflt") == "dflt"

    def test_to_dict_is_copy(self):
        loader = ConfigLoader.load(env_prefix=PREFIX, overrides={"a": 1})
        data = loader.to_dict()
        data["b"] = 2
        assert "b" not in loader.config_data


class TestSessionConfigDefaults:

    def test_defaults(self):
        config = ConfigLoader().get_session_config()
        assert config["name"] is None
        assert config["id_expiration_interval"] is None
        assert config["options"] == {}
        assert config["backend"]["type"] == "memory"
        assert config["transport"]["adapter"] == "cookie"

    def test_user_values_merged(self):
        loader = ConfigLoader.load(
            env_prefix=PREFIX,
            overrides={"sessions": {"name": "shop", "transport": {"cookie_secure": False}}},
        )
        config = loader.get_session_config()
        assert config["name"] == "shop"
        assert config["transport"]["cookie_secure"] is False
        assert config["transport"]["cookie_httponly"] is True

    def test_backend_string_normalised(self):
        loader = ConfigLoader.load(env_prefix=PREFIX, overrides={"sessions": {"backend": "file"}})
        assert loader.get_session_config()["backend"] == {"type": "file", "directory": None}

    def test_defaults_not_shared(self):
        first = ConfigLoader().get_session_config()
        first["options"]["x"] = 1
        assert ConfigLoader().get_session_config()["options"] == {}

    def test_sessions_must_be_mapping(self):
        loader = ConfigLoader.load(env_prefix=PREFIX, overrides={"sessions": "yes please"})
        with pytest.raises(ConfigError):
            loader.get_session_config()


# ============================================================================
# SessionConfig
# ============================================================================

class TestSessionConfig:

    def test_from_loader(self):
        loader = ConfigLoader.load(
            env_prefix=PREFIX,
            overrides={"sessions": {"name": "shop", "id_expiration_interval": 300}},
        )
        config = SessionConfig.from_loader(loader)
        assert config.name == "shop"
        assert config.id_expiration_interval == 300
        assert config.backend["type"] == "memory"

    def test_partial_dict_gets_defaults(self):
        config = SessionConfig.from_dict({"backend": {"type": "file"}})
        assert config.backend == {"type": "file", "directory": None}
        assert config.transport["header_name"] == "X-Session-ID"

    @pytest.mark.parametrize("data", [
        {"id_expiration_interval": "soon"},
        {"id_expiration_interval": True},
        {"name": 5},
        {"options": ["use_cookies"]},
    ])
    def test_type_errors(self, data):
        with pytest.raises(ConfigError):
            SessionConfig.from_dict(data)


# ============================================================================
# Factories
# ============================================================================

class TestFactories:

    def test_create_memory_backend(self):
        assert isinstance(create_backend({}), MemoryBackend)

    def test_create_file_backend(self, tmp_path):
        backend = create_backend({"backend": {"type": "file", "directory": str(tmp_path)}})
        assert isinstance(backend, FileBackend)
        assert backend.directory == tmp_path

    def test_file_backend_requires_directory(self):
        with pytest.raises(ConfigError, match="directory"):
            create_backend({"backend": {"type": "file"}})

    def test_unknown_backend(self):
        with pytest.raises(ConfigError, match="Unsupported session backend"):
            create_backend({"backend": {"type": "redis"}})

    def test_create_session(self, clock):
        session = create_session(
            {"name": "shop", "id_expiration_interval": 60, "options": {"gc_maxlifetime": 120}},
            clock=clock,
        )
        assert isinstance(session, BackendSession)
        assert session.name == "shop"
        assert session.id_expiration_interval == 60
        assert session.options["gc_maxlifetime"] == 120
        session.start()
        assert session.id_expires_at == clock() + 60

    def test_create_session_shared_backend(self, backend):
        session = create_session(SessionConfig(name="shop"), backend=backend)
        assert session.backend is backend

    def test_create_session_rejects_cookie_options(self):
        with pytest.raises(SessionConfigurationFault):
            create_session({"options": {"use_cookies": True}})

    def test_create_session_transport(self):
        assert isinstance(create_session_transport({}), CookieTransport)
        transport = create_session_transport({"transport": {"adapter": "header"}})
        assert isinstance(transport, HeaderTransport)
