import logging

import pytest

from arc.config import ConfigError, SecretMaskingFilter, configure_logging, load_settings

BASE = {"ARC_BACKEND_URL": "https://abcd.supabase.co/", "ARC_BACKEND_ANON_KEY": "anon"}


class TestLoadSettings:
    def test_minimal(self):
        settings = load_settings(BASE)
        assert settings.backend_url == "https://abcd.supabase.co"
        assert settings.backend_anon_key == "anon"
        assert settings.request_timeout == 15.0
        assert settings.notifications_table is None
        assert settings.gemini_api_key is None

    def test_legacy_names(self):
        settings = load_settings({"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_ANON_KEY": "k", "API_KEY": "g"})
        assert settings.backend_url == "https://x.supabase.co"
        assert settings.gemini_api_key == "g"

    @pytest.mark.parametrize("missing", ["ARC_BACKEND_URL", "ARC_BACKEND_ANON_KEY"])
    def test_required(self, missing):
        env = {k: v for k, v in BASE.items() if k != missing}
        with pytest.raises(ConfigError, match=missing):
            load_settings(env)

    def test_blank_counts_as_missing(self):
        with pytest.raises(ConfigError):
            load_settings({**BASE, "ARC_BACKEND_URL": "   "})

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, value):
        with pytest.raises(ConfigError, match="ARC_REQUEST_TIMEOUT"):
            load_settings({**BASE, "ARC_REQUEST_TIMEOUT": value})

    def test_bad_log_level(self):
        with pytest.raises(ConfigError, match="ARC_LOG_LEVEL"):
            load_settings({**BASE, "ARC_LOG_LEVEL": "chatty"})

    def test_optional_values(self):
        settings = load_settings({
            **BASE,
            "ARC_REQUEST_TIMEOUT": "4.5",
            "ARC_NOTIFICATIONS_TABLE": "section_notifications",
            "ARC_LOG_LEVEL": "debug",
        })
        assert settings.request_timeout == 4.5
        assert settings.notifications_table == "section_notifications"
        assert settings.log_level == "DEBUG"


class TestSecretMasking:
    def record(self, msg, *args):
        return logging.LogRecord("arc", logging.INFO, __file__, 1, msg, args, None)

    def test_bearer_masked(self):
        record = self.record("header %s", "Bearer abc.def-123")
        SecretMaskingFilter().filter(record)
        assert record.getMessage() == "header Bearer ***"

    def test_key_param_masked(self):
        record = self.record("GET /models?key=1 apikey=secret123&x=1")
        SecretMaskingFilter().filter(record)
        assert "secret123" not in record.getMessage()

    def test_plain_message_untouched(self):
        record = self.record("loaded %d rows", 3)
        SecretMaskingFilter().filter(record)
        assert record.getMessage() == "loaded 3 rows"


def test_configure_logging_is_idempotent():
    root = logging.getLogger()
    configure_logging("INFO")
    configure_logging("DEBUG")
    installed = [h for h in root.handlers if getattr(h, "_arc_handler", False)]
    assert len(installed) == 1
    assert root.level == logging.DEBUG
    root.removeHandler(installed[0])
