#!/usr/bin/env python3
"""
Example: Proposing, accepting and rejecting transfers

Walks two accounts through a USD -> RUB swap and a declined proposal using
the in-process service (no HTTP).
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core_exchange.config import ExchangeConfig
from core_exchange.logging_config import setup_logging
from core_exchange.service import ExchangeService


def main():
    print("Core Exchange - transfer walkthrough")
    print("=" * 60)

    config = ExchangeConfig()
    setup_logging(config.log_level, "exchange", "text")
    service = ExchangeService(config)

    alice = service.create_account().data["account_id"]
    bob = service.create_account().data["account_id"]
    service.profiles.set_verified(alice)
    service.profiles.set_online(bob)
    print(f"\nAccounts created: {alice}, {bob}")

    print("\n1. Self-transfer is refused")
    print(f"   {service.propose(alice, alice, 'USD', '10').to_dict()}")

    print("\n2. Alice offers 50 USD to Bob")
    proposal = service.propose(alice, bob, "USD", "50")
    print(f"   {proposal.to_dict()}")

    print("\n3. Bob accepts and pays back in RUB")
    print(f"   {service.receive(proposal.data['transaction_id'], bob, True).to_dict()}")

    print("\n4. Accepting again finds nothing pending")
    print(f"   {service.receive(proposal.data['transaction_id'], bob, True).to_dict()}")

    print("\n5. Bob offers 1000 RUB to Alice, Alice declines")
    offer = service.propose(bob, alice, "RUB", "1000")
    print(f"   {service.receive(offer.data['transaction_id'], alice, False).to_dict()}")

    print("\nFinal state")
    for account_id in (alice, bob):
        print(f"   {service.get_account_info(account_id).data}")


if __name__ == "__main__":
    main()
