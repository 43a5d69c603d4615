import json

from storefront_auth.auth.session import MemorySession, SessionKey, key_name


class TestMemorySession:
    def test_enum_and_string_keys_are_interchangeable(self):
        session = MemorySession()

        session.set(SessionKey.STATE, "s1")

        assert session.get("customer_state") == "s1"
        assert session.has(SessionKey.STATE)

    def test_commit_serializes_and_marks_clean(self):
        # Arrange
        session = MemorySession()
        session.set(SessionKey.EXPIRES_AT, 1_000)

        # Act
        artifact = session.commit()

        # Assert
        assert json.loads(artifact) == {"customer_expires_at": 1_000}
        assert not session.dirty

    def test_unset_missing_key_keeps_session_clean(self):
        session = MemorySession({"other": "value"})

        session.unset(SessionKey.NONCE)

        assert not session.dirty
        assert session.to_dict() == {"other": "value"}


def test_key_name():
    assert key_name(SessionKey.ID_TOKEN) == "customer_id_token"
    assert key_name("custom") == "custom"
