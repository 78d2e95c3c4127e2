"""Tests for logbook append and chain verification."""

import pytest

from ccpp_api.errors import ChainBrokenError, PersistenceError, ValidationError
from ccpp_api.ledger import GENESIS, HashChainLedger, SqlLedgerRepository, compute_signature, verify_chain
from ccpp_api.db.seed import seed_equipment
from ccpp_api.models import LogEntry

pytestmark = pytest.mark.usefixtures("plant_equipment")

ENTRIES = [
    {"timestamp": "2024-05-01T08:00:00.000000Z", "type": "AUTO", "source": "SCADA", "message": "Unit TG1 online", "equipment_id": "TG1"},
    {"timestamp": "2024-05-01T08:05:00.000000Z", "type": "MANUAL", "source": "operator", "message": "Round completed"},
    {"timestamp": "2024-05-01T08:10:00.000000Z", "type": "AUTO", "source": "SCADA", "message": "Vibration high", "equipmentId": "B3"},
]


def _append_all(ledger):
    return [ledger.append(dict(entry)) for entry in ENTRIES]


def test_first_entry_chains_from_genesis(ledger):
    entry = ledger.append(ENTRIES[0])

    assert entry.id is not None
    assert entry.signature == compute_signature(
        GENESIS, ENTRIES[0]["timestamp"], "AUTO", "SCADA", "Unit TG1 online", "TG1"
    )


def test_each_entry_signs_previous_signature(ledger):
    e1, e2, e3 = _append_all(ledger)

    assert e2.signature == compute_signature(e1.signature, e2.timestamp, "MANUAL", "operator", "Round completed")
    assert e3.signature == compute_signature(e2.signature, e3.timestamp, "AUTO", "SCADA", "Vibration high", "B3")
    assert e3.equipment_id == "B3"


def test_same_inputs_give_same_signatures(session_factory, engine):
    """Two ledgers fed identical entries produce identical chains."""
    first = HashChainLedger(SqlLedgerRepository(session_factory))
    signatures_a = [e.signature for e in _append_all(first)]

    from ccpp_api.db.base import Base

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    db = session_factory()
    seed_equipment(db)
    db.close()

    second = HashChainLedger(SqlLedgerRepository(session_factory))
    signatures_b = [e.signature for e in _append_all(second)]

    assert signatures_a == signatures_b
    assert len(set(signatures_a)) == 3


def test_generated_timestamp_is_utc_iso(ledger):
    entry = ledger.append({"type": "MANUAL", "source": "operator", "message": "No timestamp given"})

    assert entry.timestamp.endswith("Z")
    assert "T" in entry.timestamp
    assert entry.signature == compute_signature(
        GENESIS, entry.timestamp, "MANUAL", "operator", "No timestamp given"
    )


def test_valid_chain_verifies(ledger):
    _append_all(ledger)

    result = ledger.verify()

    assert result.valid
    assert result.first_invalid_index is None
    assert result.statuses == [True, True, True]
    assert result.to_dict() == {"valid": True, "firstInvalidIndex": None, "checked": 3, "error": None}


def test_empty_chain_is_valid(ledger):
    result = ledger.verify()
    assert result.valid
    assert result.checked == 0


def test_tampered_message_breaks_chain_from_that_entry(ledger, session_factory, event_logger):
    """Editing E2 after the fact reports index 1 and invalidates E3."""
    _, e2, _ = _append_all(ledger)

    db = session_factory()
    stored = db.get(LogEntry, e2.id)
    stored.message = "Round skipped"
    db.commit()
    db.close()

    result = ledger.verify()

    assert not result.valid
    assert result.first_invalid_index == 1
    assert result.statuses == [True, False, False]
    assert isinstance(result.error, ChainBrokenError)
    assert result.error.actual == e2.signature
    assert result.error.to_dict()["entry_id"] == e2.id
    assert "Ledger chain broken" in event_logger.messages("ERROR")


@pytest.mark.parametrize("field", ["timestamp", "type", "source", "equipment_id", "signature"])
def test_any_field_tamper_is_detected(ledger, field):
    _append_all(ledger)
    entries = ledger.entries()

    victim = entries[1]
    if field == "signature":
        victim.signature = "0" * 64
    elif field == "type":
        victim.type = "AUTO"
    else:
        setattr(victim, field, (getattr(victim, field) or "") + "x")

    result = ledger.verify(entries)
    assert result.first_invalid_index == 1


def test_missing_signature_is_reported(ledger):
    _append_all(ledger)
    entries = ledger.entries()
    entries[2].signature = None

    result = verify_chain(entries)

    assert not result.valid
    assert result.first_invalid_index == 2
    assert result.error.actual is None
    assert "missing signature" in result.error.to_dict()["reason"]


def test_verification_does_not_mutate_entries(ledger):
    _append_all(ledger)
    entries = ledger.entries()
    before = [e.to_dict() for e in entries]

    verify_chain(entries)

    assert [e.to_dict() for e in entries] == before


def test_new_entries_chain_from_stored_signature_after_tamper(ledger, session_factory):
    """Appends keep chaining from the stored value even when the chain is broken."""
    _, e2, _ = _append_all(ledger)
    db = session_factory()
    db.get(LogEntry, e2.id).message = "edited"
    db.commit()
    db.close()

    e4 = ledger.append({"type": "MANUAL", "source": "operator", "message": "After edit"})
    e3 = ledger.entries()[2]

    assert e4.signature == compute_signature(e3.signature, e4.timestamp, "MANUAL", "operator", "After edit")
    assert ledger.verify().first_invalid_index == 1


def test_entries_filter_by_equipment_and_order(ledger):
    _append_all(ledger)

    assert [e.equipment_id for e in ledger.entries(equipment_id="B3")] == ["B3"]
    newest = ledger.entries(newest_first=True)
    assert [e.message for e in newest] == ["Vibration high", "Round completed", "Unit TG1 online"]


@pytest.mark.parametrize(
    "entry",
    [
        {"source": "operator", "message": "no type"},
        {"type": "NOTE", "source": "operator", "message": "bad type"},
        {"type": "MANUAL", "message": "no source"},
        {"type": "MANUAL", "source": "   ", "message": "blank source"},
        {"type": "MANUAL", "source": "operator", "message": ""},
        {"type": "MANUAL", "source": "operator", "message": "bad time", "timestamp": "yesterday"},
    ],
)
def test_invalid_entries_are_rejected(ledger, entry):
    with pytest.raises(ValidationError):
        ledger.append(entry)
    assert ledger.entries() == []


def test_non_mapping_entry_is_rejected(ledger):
    with pytest.raises(ValidationError):
        ledger.append(["MANUAL", "operator", "message"])


def test_empty_equipment_id_signs_as_missing(ledger):
    entry = ledger.append({**ENTRIES[1], "equipmentId": ""})

    assert entry.equipment_id is None
    assert entry.signature == compute_signature(GENESIS, ENTRIES[1]["timestamp"], "MANUAL", "operator", "Round completed")


def test_persistent_conflict_becomes_persistence_error(ledger, event_logger):
    """Replaying an identical first entry collides on the unique signature."""
    ledger.append(ENTRIES[0])

    class ReplayRepository(SqlLedgerRepository):
        def append(self, build_entry, stage=None):
            return super().append(lambda previous: build_entry(None), stage=stage)

    replaying = HashChainLedger(
        ReplayRepository(ledger.repository.session_factory),
        event_logger=event_logger,
        max_retries=2,
    )
    with pytest.raises(PersistenceError):
        replaying.append(ENTRIES[0])

    assert event_logger.messages("WARN").count("Ledger append conflict, retrying") == 2
    assert len(ledger.entries()) == 1


def test_stage_failure_rolls_back_entry(ledger):
    def stage(db):
        raise RuntimeError("staging failed")

    with pytest.raises(RuntimeError):
        ledger.append(ENTRIES[0], stage=stage)

    assert ledger.entries() == []


@pytest.mark.parametrize("index", [0, 1, 2])
def test_tamper_detected_at_every_position(ledger, session_factory, index):
    """A stored edit at k invalidates k and everything after it."""
    appended = _append_all(ledger)

    db = session_factory()
    db.get(LogEntry, appended[index].id).message = "rewritten"
    db.commit()
    db.close()

    result = ledger.verify()

    assert result.first_invalid_index == index
    assert result.statuses == [True] * index + [False] * (len(appended) - index)
    assert result.error.entry.id == appended[index].id


def test_unknown_equipment_rejected_without_retry(ledger, event_logger):
    with pytest.raises(ValidationError, match="Unknown equipment 'NOPE'"):
        ledger.append({"type": "MANUAL", "source": "operator", "message": "m", "equipmentId": "NOPE"})

    assert event_logger.messages("WARN") == []
    assert ledger.entries() == []


def test_staged_constraint_violation_is_validation_error(ledger, session_factory, event_logger):
    """Only signature collisions are retried; other constraint failures are data errors."""
    from ccpp_api.models import Equipment

    db = session_factory()
    taken = db.get(Equipment, "TG1").checksum
    db.close()

    def stage(db):
        db.add(Equipment(external_id="TG1-COPY", name="Copy", checksum=taken))
        db.flush()

    with pytest.raises(ValidationError):
        ledger.append({"type": "MANUAL", "source": "operator", "message": "m"}, stage=stage)

    assert event_logger.messages("WARN") == []
    assert ledger.entries() == []
