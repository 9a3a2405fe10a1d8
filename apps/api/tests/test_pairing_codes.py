"""
Tests for the pairing-code identity store.
"""
import pytest

from models import Client
from services.pairing_codes import (
    PAIRING_CODE_ALPHABET,
    PAIRING_CODE_LENGTH,
    PairingCodeExhaustedError,
    UnknownPairingCodeError,
    create_client,
    generate_pairing_code,
    resolve_pairing_code,
    retry_bounded,
)


def test_generated_code_shape():
    for _ in range(50):
        code = generate_pairing_code()
        assert len(code) == PAIRING_CODE_LENGTH
        assert set(code) <= set(PAIRING_CODE_ALPHABET)


def test_alphabet_has_no_lookalikes():
    for ch in "01IO":
        assert ch not in PAIRING_CODE_ALPHABET


def test_retry_bounded_returns_first_value():
    calls = iter([None, None, "ok"])
    assert retry_bounded(lambda: next(calls), 5) == "ok"


def test_retry_bounded_raises_after_budget():
    calls = []

    def attempt():
        calls.append(1)
        return None

    with pytest.raises(PairingCodeExhaustedError) as exc_info:
        retry_bounded(attempt, 10)
    assert len(calls) == 10
    assert exc_info.value.attempts == 10


def test_create_client_persists_upper_case_code(db_session):
    client_id, code = create_client(db_session, "  Jane  ", code_factory=lambda: "ab2cd3")

    assert code == "AB2CD3"
    row = db_session.query(Client).filter(Client.id == client_id).one()
    assert row.pairing_code == "AB2CD3"
    assert row.label == "Jane"


def test_create_client_blank_label_is_none(db_session):
    client_id, _ = create_client(db_session, "   ")
    assert db_session.query(Client).filter(Client.id == client_id).one().label is None


def test_create_client_retries_on_collision(db_session):
    create_client(db_session, code_factory=lambda: "AAAAAA")
    codes = iter(["AAAAAA", "aaaaaa", "BBBBBB"])

    _, code = create_client(db_session, code_factory=lambda: next(codes))

    assert code == "BBBBBB"
    assert db_session.query(Client).count() == 2


def test_create_client_exhausts_after_max_attempts(db_session):
    create_client(db_session, code_factory=lambda: "TAKEN2")

    with pytest.raises(PairingCodeExhaustedError):
        create_client(db_session, code_factory=lambda: "TAKEN2", max_attempts=10)

    assert db_session.query(Client).count() == 1


def test_resolve_is_case_insensitive(db_session):
    client_id, _ = create_client(db_session, code_factory=lambda: "XY7KQ9")

    assert resolve_pairing_code(db_session, "xy7kq9") == client_id
    assert resolve_pairing_code(db_session, " XY7KQ9 ") == client_id


def test_resolve_unknown_code_raises(db_session):
    with pytest.raises(UnknownPairingCodeError):
        resolve_pairing_code(db_session, "NOPE22")


def test_resolve_never_creates_a_client(db_session):
    with pytest.raises(UnknownPairingCodeError):
        resolve_pairing_code(db_session, "NEW123")
    assert db_session.query(Client).count() == 0
