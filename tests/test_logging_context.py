"""Tests for logging context propagation."""

import threading

from notifier.logging.context import (
    clear_log_context,
    get_context_value,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


def test_empty_context():
    """Test that context starts empty."""
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(pass_id="4f2c", message_id="a91e")
    assert get_log_context() == {"pass_id": "4f2c", "message_id": "a91e"}
    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_pushes():
    """Test nested context pushes and pops in reverse order."""
    token1 = push_log_context(pass_id="4f2c")
    token2 = push_log_context(message_id="a91e")
    token3 = push_log_context(event_id="e77")
    assert get_log_context() == {"pass_id": "4f2c", "message_id": "a91e", "event_id": "e77"}

    pop_log_context(token3)
    assert get_log_context() == {"pass_id": "4f2c", "message_id": "a91e"}

    pop_log_context(token2)
    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    """Test that pushing the same key overwrites previous value."""
    token1 = push_log_context(message_id="first")
    token2 = push_log_context(message_id="second")
    assert get_context_value("message_id") == "second"

    pop_log_context(token2)
    assert get_context_value("message_id") == "first"
    pop_log_context(token1)
    assert get_context_value("message_id", "none") == "none"


def test_context_manager_nested():
    """Test nested context managers."""
    with log_context(pass_id="4f2c"):
        with log_context(message_id="a91e"):
            assert get_log_context() == {"pass_id": "4f2c", "message_id": "a91e"}
        assert get_log_context() == {"pass_id": "4f2c"}

    assert get_log_context() == {}


def test_context_manager_exception():
    """Test that context is restored even when exception occurs."""
    try:
        with log_context(pass_id="4f2c"):
            raise ValueError("Test exception")
    except ValueError:
        pass

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(pass_id="4f2c", user_id="u_alice")
    clear_log_context()
    assert get_log_context() == {}


def test_context_isolation():
    """Test that get_log_context returns a copy, not the actual dict."""
    with log_context(pass_id="4f2c"):
        context = get_log_context()
        context["message_id"] = "modified"

        assert get_log_context() == {"pass_id": "4f2c"}


def test_worker_threads_have_their_own_context():
    seen = {}

    def worker():
        with log_context(message_id="from-worker"):
            seen["worker"] = get_log_context()

    with log_context(pass_id="4f2c"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert get_log_context() == {"pass_id": "4f2c"}

    assert seen["worker"]["message_id"] == "from-worker"
