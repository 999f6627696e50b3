"""
Tests for the event dispatcher
"""

from unittest.mock import Mock

from core_exchange.events import (
    DomainEvent, EventDispatcher, EventPayload, create_account_event
)
from core_exchange.ledger import LedgerStore
from core_exchange.currency import Currency


class TestEventDispatcher:
    """Test publish/subscribe dispatching"""
    
    def setup_method(self):
        self.dispatcher = EventDispatcher()
        self.event = EventPayload(
            event_type=DomainEvent.TRANSACTION_PROPOSED,
            entity_type="transaction",
            entity_id="1",
            data={"amount": "50.00"}
        )
    
    def test_subscribe_and_publish(self):
        handler = Mock()
        other = Mock()
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_PROPOSED, handler)
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_ACCEPTED, other)
        
        self.dispatcher.publish(self.event)
        
        handler.assert_called_once_with(self.event)
        other.assert_not_called()
    
    def test_global_handlers_see_everything(self):
        handler = Mock()
        self.dispatcher.subscribe_all(handler)
        self.dispatcher.publish(self.event)
        assert handler.call_count == 1
    
    def test_failing_handler_does_not_break_publish(self):
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_PROPOSED, failing)
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_PROPOSED, healthy)
        
        self.dispatcher.publish(self.event)
        
        healthy.assert_called_once_with(self.event)
    
    def test_unsubscribe(self):
        handler = Mock()
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_PROPOSED, handler)
        self.dispatcher.unsubscribe(DomainEvent.TRANSACTION_PROPOSED, handler)
        # Unknown handlers are ignored
        self.dispatcher.unsubscribe(DomainEvent.TRANSACTION_PROPOSED, handler)
        
        self.dispatcher.publish(self.event)
        handler.assert_not_called()
    
    def test_handler_counts_and_clear(self):
        self.dispatcher.subscribe(DomainEvent.TRANSACTION_PROPOSED, Mock())
        self.dispatcher.subscribe(DomainEvent.ACCOUNT_CREATED, Mock())
        self.dispatcher.subscribe_all(Mock())
        
        assert self.dispatcher.get_handler_count(DomainEvent.TRANSACTION_PROPOSED) == 1
        assert self.dispatcher.get_handler_count() == 3
        
        self.dispatcher.clear()
        assert self.dispatcher.get_handler_count() == 0
    
    def test_payload_serialization(self):
        data = self.event.to_dict()
        assert data["event_type"] == "transaction.proposed"
        assert data["entity_id"] == "1"
        assert data["data"] == {"amount": "50.00"}
        assert data["event_id"]
    
    def test_account_event(self):
        account = LedgerStore({Currency.USD: "100", Currency.RUB: "10000"}).create_account()
        event = create_account_event(DomainEvent.ACCOUNT_CREATED, account)
        assert event.entity_type == "account"
        assert event.data["balances"] == {"USD": "100.00", "RUB": "10000.00"}
