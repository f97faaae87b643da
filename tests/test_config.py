import logging

from hydrolog.config.log_config import ColoredFormatter, JsonFormatter, setup_logging
from hydrolog.config.settings import Settings


class TestSettings:
    def test_cors_origins_are_split(self):
        assert Settings(CORS_ORIGINS="https://a.example, https://b.example").cors_origins == [
            "https://a.example",
            "https://b.example",
        ]
        assert Settings(CORS_ORIGINS=" , ").cors_origins == ["*"]

    def test_production_flag(self):
        assert Settings(ENVIRONMENT="Production").is_production
        assert not Settings(ENVIRONMENT="development").is_production


class TestLogging:
    def test_json_formatter_carries_context(self):
        record = logging.LogRecord("hydrolog.test", logging.WARNING, __file__, 1, "Switched %s", ("tent",), None)
        record.context = {"user_id": 3}

        line = JsonFormatter().format(record)

        assert '"message": "Switched tent"' in line
        assert '"level": "warning"' in line
        assert '"context": {"user_id": 3}' in line

    def test_colored_formatter_appends_context(self):
        record = logging.LogRecord("hydrolog.test", logging.INFO, __file__, 1, "hello", (), None)
        record.context = {"k": "v"}

        line = ColoredFormatter("%(message)s").format(record)

        assert "hello {'k': 'v'}" in line

    def test_setup_does_not_stack_handlers(self):
        setup_logging("debug")
        setup_logging("info")

        ours = [h for h in logging.getLogger().handlers if getattr(h, "_hydrolog", False)]
        assert len(ours) == 1
        assert logging.getLogger().level == logging.INFO
