import logging

import structlog

from genie_tokens.utils.logger import (
    add_session_info,
    bind_session,
    setup_logging,
)

def test_session_context_is_added_to_events():
    structlog.contextvars.clear_contextvars()
    try:
        bind_session(session_id="chat-1", user_id="user-9")

        event = add_session_info(None, "info", {"event": "Token balance updated"})

        assert event["session_id"] == "chat-1"
        assert event["user_id"] == "user-9"
    finally:
        structlog.contextvars.clear_contextvars()

def test_missing_session_context_is_skipped():
    structlog.contextvars.clear_contextvars()

    event = add_session_info(None, "info", {"event": "Purchase started"})

    assert "session_id" not in event
    assert "user_id" not in event

def test_setup_logging_defaults_to_info(restore_logging):
    setup_logging()

    root_logger = logging.getLogger()
    assert root_logger.level == logging.INFO
    assert len(root_logger.handlers) == 1
    assert logging.getLogger("aiohttp").level == logging.WARNING

def test_debug_flag_lowers_root_level(restore_logging):
    setup_logging(is_production=True, debug=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("aiohttp.client").level == logging.WARNING

def test_repeated_setup_keeps_a_single_handler(restore_logging):
    setup_logging()
    setup_logging()

    assert len(logging.getLogger().handlers) == 1
