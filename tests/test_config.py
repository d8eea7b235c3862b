"""
Test suite for configuration and structured logging
"""

import json
import logging
import pytest

from lending_ledger import config as config_module
from lending_ledger.config import LedgerConfig, get_config, reload_config
from lending_ledger.logging_config import JSONFormatter, log_action, setup_logging


class TestLedgerConfig:
    """Test pydantic-settings configuration"""

    def test_defaults(self, monkeypatch):
        for name in ["LEDGER_STORAGE_BACKEND", "LEDGER_ALLOW_OVERPAYMENT", "LEDGER_AMOUNT_PLACES"]:
            monkeypatch.delenv(name, raising=False)

        config = LedgerConfig()

        assert config.storage_backend == "sqlite"
        assert config.amount_places == 2
        assert config.allow_overpayment is False
        assert config.enable_audit_logging is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LEDGER_ALLOW_OVERPAYMENT", "true")
        monkeypatch.setenv("LEDGER_API_PORT", "9100")

        config = LedgerConfig()

        assert config.storage_backend == "memory"
        assert config.allow_overpayment is True
        assert config.api_port == 9100

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "DEBUG")
        try:
            reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestJSONFormatter:
    """Test structured log output"""

    def make_record(self, **attrs):
        record = logging.LogRecord(
            name="lending_ledger.loans", level=logging.INFO, pathname=__file__,
            lineno=1, msg="Payment %s recorded", args=("PAY1",), exc_info=None
        )
        for key, value in attrs.items():
            setattr(record, key, value)
        return record

    def test_structured_fields(self):
        record = self.make_record(action="record_payment", resource="loan",
                                  resource_id="L1", extra={"emis_left": 32})

        entry = json.loads(JSONFormatter().format(record))

        assert entry['level'] == "INFO"
        assert entry['logger'] == "lending_ledger.loans"
        assert entry['message'] == "Payment PAY1 recorded"
        assert entry['action'] == "record_payment"
        assert entry['resource_id'] == "L1"
        assert entry['extra'] == {"emis_left": 32}
        assert 'timestamp' in entry

    def test_missing_fields_omitted(self):
        entry = json.loads(JSONFormatter().format(self.make_record()))

        assert 'action' not in entry
        assert 'extra' not in entry


class TestLogging:
    """Test logger setup and log_action"""

    logger_name = "lending_ledger_test"

    def teardown_method(self):
        logger = logging.getLogger(self.logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    def test_setup_logging_json_file(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("INFO", "json", str(log_file), logger_name=self.logger_name)

        log_action(logger, "info", "Loan L1 created", action="create_loan",
                   resource="loan", resource_id="L1")
        log_action(logger, "debug", "not emitted")
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text().strip().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry['message'] == "Loan L1 created"
        assert entry['resource'] == "loan"

    def test_setup_logging_text(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("WARNING", "text", str(log_file), logger_name=self.logger_name)

        log_action(logger, "warning", "Payment rejected")
        for handler in logger.handlers:
            handler.flush()

        line = log_file.read_text().strip()
        assert "WARNING" in line
        assert line.endswith("Payment rejected")

    def test_setup_logging_replaces_handlers(self, tmp_path):
        setup_logging("INFO", "json", str(tmp_path / "a.log"), logger_name=self.logger_name)
        logger = setup_logging("INFO", "json", str(tmp_path / "b.log"), logger_name=self.logger_name)

        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_log_action_unknown_level(self):
        with pytest.raises(AttributeError):
            log_action(logging.getLogger(self.logger_name), "loud", "message")
