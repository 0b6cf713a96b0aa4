"""
ConversationTurnManager tests
"""

from datetime import datetime, timezone

import pytest

from lingua_coach.client.conversation import ConversationTurn, ConversationTurnManager, Role


def fixed_clock():
    stamp = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    return lambda: stamp


class TestConversationLog:
    """Ordering and history"""

    @pytest.fixture
    def manager(self, player):
        return ConversationTurnManager(player)

    @pytest.mark.parametrize("exchanges", [0, 1, 4, 5, 6, 12])
    def test_history_window_and_no_audio(self, player, exchanges):
        manager = ConversationTurnManager(player)
        for i in range(exchanges):
            manager.append_exchange(f"said {i}", f"reply {i}", b"mp3")

        history = manager.history_for_request()

        assert len(history) == min(2 * exchanges, 10)
        assert all("audio" not in entry for entry in history)
        expected = [turn.content for turn in manager.turns][-10:]
        assert [entry["content"] for entry in history] == expected

    def test_history_entries_carry_role_and_timestamp(self, manager):
        manager.append_exchange("Hello", "Hi there!", b"mp3")

        user, assistant = manager.history_for_request()

        assert user["role"] == "user"
        assert assistant["role"] == "assistant"
        assert set(user) == {"id", "role", "content", "timestamp"}
        datetime.fromisoformat(user["timestamp"])

    def test_exchange_appends_user_then_assistant(self, manager):
        user, assistant = manager.append_exchange("I go yesterday", "You went yesterday!", b"mp3")

        assert [t.role for t in manager.turns] == [Role.USER, Role.ASSISTANT]
        assert user.audio is None
        assert assistant.audio == b"mp3"
        assert user.id != assistant.id

    def test_timestamps_strictly_increase_with_frozen_clock(self, player):
        manager = ConversationTurnManager(player, clock=fixed_clock())

        for i in range(5):
            manager.new_turn(Role.USER, f"turn {i}")

        stamps = [t.timestamp for t in manager.turns]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

    def test_append_turn_moves_stale_timestamp(self, manager):
        first = manager.new_turn(Role.USER, "first")
        stale = ConversationTurn(
            id="late", role=Role.USER, content="second", timestamp=first.timestamp
        )

        stored = manager.append_turn(stale)

        assert stored.timestamp > first.timestamp
        assert manager.get_turn("late") is stored

    def test_duplicate_id_rejected(self, manager):
        turn = manager.new_turn(Role.USER, "hello")

        with pytest.raises(ValueError):
            manager.append_turn(turn)

    def test_user_turn_cannot_carry_audio(self):
        with pytest.raises(ValueError):
            ConversationTurn(
                id="u1",
                role=Role.USER,
                content="hello",
                timestamp=datetime.now(timezone.utc),
                audio=b"mp3",
            )

    def test_turns_are_immutable(self, manager):
        turn = manager.new_turn(Role.USER, "hello")

        with pytest.raises(Exception):
            turn.content = "changed"

    def test_zero_window_sends_no_history(self, player):
        manager = ConversationTurnManager(player, history_window=0)
        manager.append_exchange("a", "b", b"mp3")

        assert manager.history_for_request() == []


class TestPlayback:
    """Single-reply playback"""

    @pytest.fixture
    def manager(self, player):
        return ConversationTurnManager(player)

    def test_play_starts_player(self, manager, player):
        _, reply = manager.append_exchange("hi", "hello", b"audio-1")

        manager.play(reply.id)

        assert player.played == [b"audio-1"]
        assert manager.is_playing(reply.id)

    def test_playing_another_turn_stops_the_first(self, manager, player):
        _, a = manager.append_exchange("one", "reply one", b"a")
        _, b = manager.append_exchange("two", "reply two", b"b")

        manager.play(a.id)
        manager.play(b.id)

        assert player.stop_calls == 1
        assert manager.playing_id == b.id
        assert not manager.is_playing(a.id)

    def test_play_same_turn_toggles_off(self, manager, player):
        _, reply = manager.append_exchange("hi", "hello", b"a")

        manager.play(reply.id)
        manager.play(reply.id)

        assert manager.playing_id is None
        assert player.stop_calls == 1
        assert len(player.played) == 1

    def test_natural_end_clears_playing(self, manager, player):
        _, reply = manager.append_exchange("hi", "hello", b"a")
        manager.play(reply.id)

        player.callbacks[-1]()

        assert manager.playing_id is None

    def test_stale_end_callback_is_ignored(self, manager, player):
        _, a = manager.append_exchange("one", "reply one", b"a")
        _, b = manager.append_exchange("two", "reply two", b"b")
        manager.play(a.id)
        ended_a = player.callbacks[-1]
        manager.play(b.id)

        ended_a()

        assert manager.playing_id == b.id

    def test_play_turn_without_audio(self, manager):
        user, _ = manager.append_exchange("hi", "hello", b"a")

        with pytest.raises(ValueError):
            manager.play(user.id)

    def test_play_unknown_turn(self, manager):
        with pytest.raises(KeyError):
            manager.play("missing")

    def test_player_failure_leaves_nothing_playing(self, manager, player):
        _, reply = manager.append_exchange("hi", "hello", b"a")

        def broken(data, on_ended):
            raise RuntimeError("no output device")

        player.play = broken

        with pytest.raises(RuntimeError):
            manager.play(reply.id)
        assert manager.playing_id is None

    def test_stop_when_idle_does_not_touch_player(self, manager, player):
        manager.stop()

        assert player.stop_calls == 0

    def test_clear_stops_playback_before_emptying(self, manager, player):
        _, reply = manager.append_exchange("hi", "hello", b"a")
        manager.play(reply.id)
        sizes_at_stop = []
        player.on_stop = lambda: sizes_at_stop.append(len(manager))

        manager.clear()

        assert sizes_at_stop == [2]
        assert len(manager) == 0
        assert manager.playing_id is None
