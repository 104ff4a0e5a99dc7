"""Idempotency service tests"""
import pytest
from fastapi import Response
from fastapi.responses import RedirectResponse, StreamingResponse

from mailroom.models.idempotency import IdempotencyRecord
from mailroom.services.idempotency_service import (
    ReturnSavedResponse, StartProcessing, get_saved_response, parse_idempotency_key,
    save_response, try_processing
)


@pytest.mark.critical
class TestParseIdempotencyKey:
    """Key validation"""

    def test_valid_key(self):
        assert parse_idempotency_key("2c6a3b1e-5f0d-4a1e-9b1c-1d2e3f4a5b6c") == "2c6a3b1e-5f0d-4a1e-9b1c-1d2e3f4a5b6c"

    def test_spaces_and_punctuation_are_printable(self):
        assert parse_idempotency_key("retry #1: ~ok~") == "retry #1: ~ok~"

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            parse_idempotency_key("")

    def test_length_limit(self):
        assert parse_idempotency_key("a" * 50) == "a" * 50
        with pytest.raises(ValueError):
            parse_idempotency_key("a" * 51)

    @pytest.mark.parametrize("key", ["line\nbreak", "nul\x00", "del\x7f", "naïve", "emoji\U0001F600"])
    def test_non_printable_ascii_rejected(self, key):
        with pytest.raises(ValueError):
            parse_idempotency_key(key)


@pytest.mark.critical
class TestTryProcessing:
    """Claiming keys and replaying saved responses"""

    def test_first_request_claims_key(self, db_session, test_user):
        action = try_processing(db_session, "key-1", test_user.id)
        assert isinstance(action, StartProcessing)

        record = db_session.query(IdempotencyRecord).one()
        assert record.response_status_code is None

    def test_saved_response_is_replayed(self, db_session, test_user):
        assert isinstance(try_processing(db_session, "key-1", test_user.id), StartProcessing)
        original = RedirectResponse("/admin/newsletters", status_code=303)
        save_response(db_session, "key-1", test_user.id, original)
        db_session.commit()

        action = try_processing(db_session, "key-1", test_user.id)

        assert isinstance(action, ReturnSavedResponse)
        assert action.response.status_code == 303
        assert action.response.raw_headers == original.raw_headers
        assert action.response.body == original.body

    def test_body_and_header_order_survive(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        original = Response(content=b"\x00\xffbinary", status_code=201)
        original.raw_headers = [
            (b"x-second", b"2"),
            (b"x-first", b"1"),
            (b"set-cookie", b"a=1"),
            (b"set-cookie", b"b=2"),
        ]
        save_response(db_session, "key-1", test_user.id, original)
        db_session.commit()

        replay = get_saved_response(db_session, "key-1", test_user.id)
        assert replay.status_code == 201
        assert replay.body == b"\x00\xffbinary"
        assert replay.raw_headers == original.raw_headers

    def test_keys_are_scoped_per_user(self, db_session, test_user, test_user_2):
        try_processing(db_session, "shared", test_user.id)
        save_response(db_session, "shared", test_user.id, Response(status_code=200))
        db_session.commit()

        action = try_processing(db_session, "shared", test_user_2.id)
        assert isinstance(action, StartProcessing)

    def test_claimed_key_without_response_raises(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        db_session.commit()

        with pytest.raises(RuntimeError):
            try_processing(db_session, "key-1", test_user.id)

    def test_rolled_back_claim_can_be_claimed_again(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        db_session.rollback()

        assert isinstance(try_processing(db_session, "key-1", test_user.id), StartProcessing)


@pytest.mark.high
class TestSaveResponse:
    """Persisting responses"""

    def test_unknown_key_has_no_saved_response(self, db_session, test_user):
        assert get_saved_response(db_session, "missing", test_user.id) is None

    def test_returns_the_same_response(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        response = Response(content=b"ok")
        assert save_response(db_session, "key-1", test_user.id, response) is response

    def test_invalid_header_names_are_not_saved(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        response = Response(content=b"ok")
        response.raw_headers = [(b"bad header", b"x"), (b"x-good", b"y"), (b"x-split", b"a\r\nb")]
        save_response(db_session, "key-1", test_user.id, response)
        db_session.commit()

        record = db_session.query(IdempotencyRecord).one()
        assert record.response_headers == [["x-good", "y"]]

    def test_streaming_response_cannot_be_saved(self, db_session, test_user):
        try_processing(db_session, "key-1", test_user.id)
        response = StreamingResponse(iter([b"chunk"]))

        with pytest.raises(RuntimeError):
            save_response(db_session, "key-1", test_user.id, response)

    def test_malformed_stored_header_is_dropped_on_replay(self, db_session, test_user):
        db_session.add(IdempotencyRecord(
            user_id=test_user.id,
            idempotency_key="key-1",
            response_status_code=200,
            response_headers=[["x-ok", "1"], ["only-a-name"], ["bad name", "2"]],
            response_body=b"",
        ))
        db_session.commit()

        replay = get_saved_response(db_session, "key-1", test_user.id)
        assert replay.raw_headers == [(b"x-ok", b"1")]
