"""
sessiontab/services/container.py

Purpose: Service wiring

- Builds one instance of every core component at startup
- The dispatcher receives the container instead of reaching for globals
"""

from dataclasses import dataclass
from typing import Optional

from sessiontab.core.config import Settings, settings
from sessiontab.db.repository import Repository
from sessiontab.services.attendance_service import AttendanceRecorder
from sessiontab.services.authorization import AuthorizationGate
from sessiontab.services.conversation_store import ConversationStateStore
from sessiontab.services.ledger_service import LedgerEngine
from sessiontab.services.rate_service import RateTable


@dataclass
class Services:
    repository: Repository
    conversations: ConversationStateStore
    gate: AuthorizationGate
    rates: RateTable
    ledger: LedgerEngine
    attendance: AttendanceRecorder
    currency: str = "Toman"


def build_services(repository: Repository, config: Optional[Settings] = None) -> Services:
    """
    Wires the core components around a repository.

    Args:
        repository: Storage backend
        config: Settings to read (defaults to the global settings)
    """
    config = config or settings

    conversations = ConversationStateStore(
        shards=config.CONVERSATION_LOCK_SHARDS,
        timeout_minutes=config.CONVERSATION_TIMEOUT_MINUTES,
    )
    gate = AuthorizationGate(repository, default_admin_id=config.DEFAULT_ADMIN_ID)
    rates = RateTable(repository)
    ledger = LedgerEngine(repository, rates)
    attendance = AttendanceRecorder(repository, ledger, gate)

    return Services(
        repository=repository,
        conversations=conversations,
        gate=gate,
        rates=rates,
        ledger=ledger,
        attendance=attendance,
        currency=config.CURRENCY_LABEL,
    )
