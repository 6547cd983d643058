"""Tests for the in-memory PresenceTable."""
from webchat.presence import PresenceEntry, PresenceTable


class TestRegister:
    def test_register_creates_entry(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")

        assert table.get("c1") == PresenceEntry("c1", "u1", "+100")
        assert len(table) == 1
        assert "c1" in table

    def test_rejoin_same_connection_keeps_one_entry(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")
        table.register("c1", "u1", "+100")

        assert len(table) == 1
        assert table.roster() == ["+100"]

    def test_rejoin_same_connection_overwrites_identity(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")
        table.register("c1", "u2", "+200")

        assert table.get("c1").user_id == "u2"
        assert table.roster() == ["+200"]

    def test_same_user_on_new_connection_supersedes_old(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")
        superseded = table.register("c2", "u1", "+100")

        assert [e.connection_id for e in superseded] == ["c1"]
        assert "c1" not in table
        assert table.get("c2").user_id == "u1"
        assert len(table) == 1


class TestRemove:
    def test_remove_returns_entry(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")

        removed = table.remove("c1")

        assert removed.user_id == "u1"
        assert len(table) == 0

    def test_remove_unknown_is_none(self):
        table = PresenceTable()
        assert table.remove("missing") is None

    def test_remove_twice(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")
        table.remove("c1")
        assert table.remove("c1") is None


class TestViews:
    def test_roster_has_distinct_phones_in_join_order(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")
        table.register("c2", "u2", "+200")
        table.register("c3", "u3", "+100")  # shared phone, different user

        assert table.roster() == ["+100", "+200"]

    def test_snapshot_is_a_copy(self):
        table = PresenceTable()
        table.register("c1", "u1", "+100")

        snap = table.snapshot()
        table.remove("c1")

        assert len(snap) == 1
        assert snap[0].to_dict() == {"connectionId": "c1", "userId": "u1", "phone": "+100"}
