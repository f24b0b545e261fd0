import pytest

from unittest import TestCase

from ..base import SettingsError
from ..settings import DEFAULT_SETTINGS, Settings, env_name


class TestSettings(TestCase):
    def setUp(self):
        self.test_key = "TEST"
        self.test_value = "VALUE"
        self.test_settings = {self.test_key: self.test_value}
        self.test_instance = Settings(self.test_settings)

    def test_settings_init(self):
        """Test settings initialization."""
        for key in self.test_settings:
            assert key in self.test_instance
            assert self.test_instance[key] == self.test_settings[key]
            assert (
                self.test_instance.get_value(self.test_key) == self.test_settings[key]
            )
        with self.assertRaises(KeyError):
            self.test_instance["MISSING"]
        assert len(self.test_instance) == 1
        assert len(self.test_instance.copy()) == 1

    def test_get_formats(self):
        """Test retrieval with formatting."""
        assert "Settings" in str(self.test_instance)
        with pytest.raises(TypeError):
            self.test_instance[0]
        self.test_instance["BOOL"] = "true"
        assert self.test_instance.get_bool("BOOL") is True
        self.test_instance["BOOL"] = "false"
        assert self.test_instance.get_bool("BOOL") is False
        self.test_instance["INT"] = "5"
        assert self.test_instance.get_int("INT") == 5
        assert self.test_instance.get_str("INT") == "5"
        self.test_instance["FLOAT"] = "2.5"
        assert self.test_instance.get_float("FLOAT") == 2.5
        assert self.test_instance.get_float("MISSING") is None
        with self.assertRaises(TypeError):
            self.test_instance[None] = 1
        with self.assertRaises(ValueError):
            self.test_instance[""] = 1

    def test_bad_number(self):
        self.test_instance["INT"] = "five"
        with self.assertRaises(SettingsError):
            self.test_instance.get_int("INT")
        with self.assertRaises(SettingsError):
            self.test_instance.get_float("INT")

    def test_remove(self):
        """Test value removal."""
        del self.test_instance[self.test_key]
        assert self.test_key not in self.test_instance
        self.test_instance.clear_value("MISSING")

    def test_set_default(self):
        self.test_instance.set_default(self.test_key, "OTHER")
        self.test_instance.set_default("NEW", "DEFAULT")
        assert self.test_instance[self.test_key] == self.test_value
        assert self.test_instance["NEW"] == "DEFAULT"

    def test_extend(self):
        extended = self.test_instance.extend({"NEW": 1})
        assert extended["NEW"] == 1
        assert "NEW" not in self.test_instance
        self.test_instance.update({"NEW": 2})
        assert self.test_instance["NEW"] == 2

    def test_defaults(self):
        settings = Settings.defaults()
        assert settings.get_int("protocol.version") == 1
        assert settings.get_float("holder.proof_timeout") is None
        assert settings.get_int("verifier.revocation_root_max_age") == 0
        assert len(settings) == len(DEFAULT_SETTINGS)

    def test_from_env(self):
        assert env_name("holder.proof_timeout") == "ZKCRED_HOLDER_PROOF_TIMEOUT"
        settings = Settings.from_env(
            environ={
                "ZKCRED_HOLDER_PROOF_TIMEOUT": "30",
                "ZKCRED_VERIFIER_CLOCK_SKEW": "5",
                "UNRELATED": "x",
            }
        )
        assert settings.get_float("holder.proof_timeout") == 30.0
        assert settings.get_int("verifier.clock_skew") == 5
        assert settings.get_int("gadgets.fetch_attempts") == 5
        assert "UNRELATED" not in settings

    def test_from_env_base(self):
        settings = Settings.from_env(
            prefix="TEST_",
            environ={"TEST_LOG_LEVEL": "debug"},
            base={"custom.key": 1},
        )
        assert settings["custom.key"] == 1
        assert settings.get_str("log.level") == "debug"
