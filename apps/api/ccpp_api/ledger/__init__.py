"""Chained, tamper-evident logbook."""

from ccpp_api.ledger.chain import ChainVerification, verify_chain
from ccpp_api.ledger.repository import SqlLedgerRepository
from ccpp_api.ledger.service import HashChainLedger
from ccpp_api.ledger.signature import GENESIS, compute_signature

__all__ = [
    "ChainVerification",
    "GENESIS",
    "HashChainLedger",
    "SqlLedgerRepository",
    "compute_signature",
    "verify_chain",
]
