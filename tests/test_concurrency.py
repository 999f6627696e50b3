"""
Concurrency tests for the transfer engine

CRITICAL: racing receivers settle a transaction at most once, and readers
never observe half of a settlement.
"""

import threading
from decimal import Decimal

from core_exchange.currency import ConversionTable, Currency
from core_exchange.errors import ExchangeError, TransactionNotFound
from core_exchange.ledger import LedgerStore
from core_exchange.queries import AccountQueryService
from core_exchange.transactions import TransactionLog, TransactionStatus
from core_exchange.transfers import TransferEngine


class TestConcurrentTransfers:
    
    def setup_method(self):
        self.store = LedgerStore({Currency.USD: "100", Currency.RUB: "10000"})
        self.log = TransactionLog()
        self.engine = TransferEngine(
            self.store, self.log,
            ConversionTable({
                (Currency.USD, Currency.RUB): "100",
                (Currency.RUB, Currency.USD): "0.01",
            })
        )
        self.queries = AccountQueryService(self.store, self.log)
        self.accounts = [self.store.create_account().id for _ in range(4)]
    
    def test_racing_receivers_settle_once(self):
        a, b = self.accounts[:2]
        self.engine.propose(a, b, "USD", "50")
        
        barrier = threading.Barrier(8)
        outcomes = []
        outcomes_lock = threading.Lock()
        
        def receive():
            barrier.wait()
            try:
                self.engine.receive(1, b, True)
                outcome = "accepted"
            except TransactionNotFound:
                outcome = "not_found"
            with outcomes_lock:
                outcomes.append(outcome)
        
        threads = [threading.Thread(target=receive) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        assert outcomes.count("accepted") == 1
        assert outcomes.count("not_found") == 7
        assert self.store.get_balance(a, Currency.USD) == Decimal('50')
        assert self.store.get_balance(b, Currency.RUB) == Decimal('5000')
        assert self.log.get(1).status == TransactionStatus.ACCEPTED
    
    def test_concurrent_transfers_conserve_totals(self):
        """Test totals survive many threads proposing and accepting in opposite directions"""
        totals = {
            currency: sum(self.store.get_balance(a, currency) for a in self.accounts)
            for currency in Currency
        }
        
        def worker(offset):
            for i in range(25):
                sender = self.accounts[(offset + i) % 4]
                recipient = self.accounts[(offset + i + 1 + offset % 3) % 4]
                if sender == recipient:
                    continue
                currency = "USD" if i % 2 else "RUB"
                amount = "7" if currency == "USD" else "300"
                try:
                    transaction = self.engine.propose(sender, recipient, currency, amount)
                    self.engine.receive(transaction.id, recipient, True)
                except ExchangeError:
                    pass
        
        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        for currency in Currency:
            balances = [self.store.get_balance(a, currency) for a in self.accounts]
            assert sum(balances) == totals[currency]
            assert all(balance >= 0 for balance in balances)
        
        # Nothing left half-processed
        for account_id in self.accounts:
            for transaction in self.log.for_account(account_id):
                assert transaction.is_terminal
    
    def test_readers_never_see_partial_settlement(self):
        """Test an account's value at the fixed rate is constant for every read"""
        a, b = self.accounts[:2]
        stop = threading.Event()
        observed = []
        
        def read():
            while not stop.is_set():
                balances = self.queries.get_info(a).balances
                observed.append(balances[Currency.USD] + balances[Currency.RUB] * Decimal('0.01'))
        
        def trade():
            for i in range(50):
                currency, amount = ("USD", "2") if i % 2 else ("RUB", "200")
                transaction = self.engine.propose(a, b, currency, amount)
                self.engine.receive(transaction.id, b, True)
        
        reader = threading.Thread(target=read)
        reader.start()
        try:
            trade()
        finally:
            stop.set()
            reader.join()
        
        assert observed
        assert all(value == Decimal('200') for value in observed)
    
    def test_store_reads_never_see_partial_settlement(self):
        """Test direct store reads are consistent with in-flight settlements"""
        a, b = self.accounts[:2]
        stop = threading.Event()
        observed = []
        
        def read():
            while not stop.is_set():
                for account_id in (a, b):
                    balances = self.store.get_account(account_id).balances
                    observed.append(balances[Currency.USD] + balances[Currency.RUB] * Decimal('0.01'))
                snapshot = self.store.balances_snapshot(a)
                observed.append(snapshot[Currency.USD] + snapshot[Currency.RUB] * Decimal('0.01'))
        
        readers = [threading.Thread(target=read) for _ in range(2)]
        for reader in readers:
            reader.start()
        try:
            for i in range(100):
                currency, amount = ("USD", "5") if i % 2 else ("RUB", "500")
                transaction = self.engine.propose(a, b, currency, amount)
                self.engine.receive(transaction.id, b, True)
        finally:
            stop.set()
            for reader in readers:
                reader.join()
        
        assert observed
        assert all(value == Decimal('200') for value in observed)
