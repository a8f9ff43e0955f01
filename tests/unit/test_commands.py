"""Unit tests for the command queue."""

from ftpqueue.ftp.commands import Command, CommandQueue, Step


class TestCommand:
    """Tests for the Command record."""

    def test_str_masks_password(self):
        """Test that PASS arguments never appear in the string form."""
        assert str(Command(text="PASS secret")) == "PASS ****"
        assert str(Command(text="USER alice")) == "USER alice"


class TestCommandQueue:
    """Tests for CommandQueue ordering."""

    def test_fifo_order(self):
        """Test that plain appends are popped in order."""
        queue = CommandQueue()
        queue.append("MKD a")
        queue.append("MKD b")

        assert queue.next() == "MKD a"
        assert queue.next() == "MKD b"
        assert queue.next() is None

    def test_urgent_goes_to_head(self):
        """Test that an urgent command runs before earlier plain commands."""
        queue = CommandQueue()
        queue.append("NOOP")
        queue.append("FEAT")
        queue.append("PASV", urgent=True)

        assert [c.text for c in queue.pending] == ["PASV", "NOOP", "FEAT"]
        assert queue.pending[0].urgent is True

    def test_urgent_batch_keeps_internal_order(self):
        """Test that an urgent batch is inserted as one contiguous block."""
        queue = CommandQueue()
        queue.append("NOOP")
        queue.append(["USER alice", "PASS secret"], urgent=True)

        assert [c.text for c in queue.pending] == ["USER alice", "PASS secret", "NOOP"]

    def test_later_urgent_precedes_earlier_urgent(self):
        """Test that each urgent insert lands in front of the current head."""
        queue = CommandQueue()
        queue.append("RETR a", urgent=True)
        queue.append("TYPE I", urgent=True)

        assert queue.next() == "TYPE I"
        assert queue.next() == "RETR a"

    def test_current_and_history(self):
        """Test that popped commands are recorded."""
        def continuation(error, reply):
            return Step.ADVANCE

        queue = CommandQueue()
        queue.append(Command(text="NOOP", continuation=continuation))
        queue.append("FEAT")

        assert queue.current is None
        assert queue.current_continuation() is None

        queue.next()
        assert queue.current.text == "NOOP"
        assert queue.current_continuation() is continuation

        queue.next()
        assert queue.current_continuation() is None
        assert [c.text for c in queue.history] == ["NOOP", "FEAT"]

    def test_clear_returns_dropped_count(self):
        """Test that clear empties the queue and reports the count."""
        queue = CommandQueue()
        queue.append(["NOOP", "FEAT", "STAT"])

        assert len(queue) == 3
        assert queue.clear() == 3
        assert len(queue) == 0
