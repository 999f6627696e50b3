"""
Tests for configuration and structured logging
"""

import json
import logging
from decimal import Decimal

import pytest

from core_exchange import config as config_module
from core_exchange.config import ExchangeConfig, get_config, reload_config
from core_exchange.logging_config import (
    JSONFormatter, correlation_scope, current_correlation_id, get_logger, log_action, setup_logging
)


class TestExchangeConfig:
    
    def test_defaults(self, monkeypatch):
        for name in ("EXCHANGE_STARTING_USD", "EXCHANGE_STARTING_RUB", "EXCHANGE_USD_RUB_RATE"):
            monkeypatch.delenv(name, raising=False)
        config = ExchangeConfig()
        assert config.starting_usd == "100"
        assert config.starting_rub == "10000"
        assert config.usd_rub_rate == "100"
        assert config.rub_usd_rate == "0.01"
        assert config.enable_events is True
    
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("EXCHANGE_STARTING_USD", "250")
        monkeypatch.setenv("EXCHANGE_ENABLE_EVENTS", "false")
        original = get_config()
        try:
            config = reload_config()
            assert config.starting_usd == "250"
            assert config.enable_events is False
            assert get_config() is config
        finally:
            config_module.config = original


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestLogging:
    
    def setup_method(self):
        self.logger = get_logger("exchange.tests.logging")
        self.logger.setLevel(logging.INFO)
        self.handler = RecordingHandler()
        self.logger.addHandler(self.handler)
    
    def teardown_method(self):
        self.logger.removeHandler(self.handler)
    
    def test_log_action_attaches_structured_fields(self):
        log_action(
            self.logger, "info", "Transaction 1 proposed",
            user_id="1", action="propose_transaction",
            resource="transaction:1", extra={"amount": "USD 50.00"}
        )
        record = self.handler.records[0]
        assert record.action == "propose_transaction"
        assert record.resource == "transaction:1"
        
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["message"] == "Transaction 1 proposed"
        assert entry["user_id"] == "1"
        assert entry["extra"] == {"amount": "USD 50.00"}
        assert "correlation_id" not in entry
    
    def test_correlation_scope(self):
        """Test records logged inside a scope carry its correlation id"""
        with correlation_scope("abc123") as correlation_id:
            assert current_correlation_id() == "abc123"
            log_action(self.logger, "warning", "Transaction 2 rejected", action="reject_transaction")
        assert correlation_id == "abc123"
        assert current_correlation_id() is None
        
        entry = json.loads(JSONFormatter().format(self.handler.records[0]))
        assert entry["correlation_id"] == "abc123"
        
        with correlation_scope() as generated:
            assert len(generated) == 32
    
    def test_decimal_values_keep_their_digits(self):
        log_action(self.logger, "info", "Settled", extra={"rate": Decimal("0.01")})
        entry = json.loads(JSONFormatter().format(self.handler.records[0]))
        assert entry["extra"] == {"rate": "0.01"}
    
    def test_log_action_respects_level(self):
        log_action(self.logger, "debug", "hidden", action="noise")
        assert self.handler.records == []
    
    @pytest.mark.parametrize("log_format", ["json", "text"])
    def test_setup_logging(self, log_format):
        logger = setup_logging("WARNING", "exchange.tests.setup", log_format)
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert logger.propagate is False
        
        # Calling again replaces the handler
        setup_logging("DEBUG", "exchange.tests.setup", log_format)
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter) == (log_format == "json")
