"""Seed data for development and testing."""

import logging

from sqlalchemy.orm import Session

from ccpp_api.db.base import Base
from ccpp_api.ledger import HashChainLedger
from ccpp_api.models import Equipment, LogEntryType
from ccpp_api.utils.hashing import checksum

logger = logging.getLogger(__name__)

# Main units of the combined-cycle plant
PLANT_EQUIPMENT = [
    {"externalId": "TG1", "name": "Gas turbine 1", "type": "GAS_TURBINE"},
    {"externalId": "TG2", "name": "Gas turbine 2", "type": "GAS_TURBINE"},
    {"externalId": "B1", "name": "Heat recovery steam generator 1", "type": "HRSG"},
    {"externalId": "B2", "name": "Heat recovery steam generator 2", "type": "HRSG"},
    {"externalId": "B3", "name": "Steam turbine", "type": "STEAM_TURBINE"},
    {"externalId": "C0", "name": "Condenser", "type": "CONDENSER"},
]


def create_schema(engine) -> None:
    """Create all tables (development; production uses Alembic)."""
    import ccpp_api.models  # noqa: F401

    Base.metadata.create_all(engine)


def seed_equipment(db: Session) -> int:
    """Insert plant equipment that is not there yet."""
    created = 0
    for item in PLANT_EQUIPMENT:
        if db.get(Equipment, item["externalId"]) is not None:
            continue
        db.add(
            Equipment(
                external_id=item["externalId"],
                name=item["name"],
                type=item["type"],
                version=1,
                is_immutable=True,
                checksum=checksum(item),
            )
        )
        created += 1
    db.commit()
    return created


def seed_logbook(ledger: HashChainLedger) -> bool:
    """Open the logbook with a first AUTO entry if it is empty."""
    if ledger.entries():
        return False
    ledger.append(
        {
            "type": LogEntryType.AUTO,
            "source": "SCADA_MONITOR",
            "message": "Logbook initialized",
        }
    )
    return True


def seed_all(db: Session, ledger: HashChainLedger) -> None:
    """Seed all initial data."""
    created = seed_equipment(db)
    logger.info(f"Seeded {created} equipments")
    if seed_logbook(ledger):
        logger.info("Seeded logbook genesis entry")
