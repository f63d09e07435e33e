"""
Test suite for the interactive session store.
"""

import threading

import pytest

from zonesight.engine.session_store import SessionStep, SessionStore
from zonesight.shared.utils.error_policy import InvalidTransitionError


def test_create_starts_at_market_selection():
    store = SessionStore()
    session = store.create("chat-1")
    assert session.step is SessionStep.SELECT_MARKET
    assert session.instrument is None
    assert store.get("chat-1") == session
    assert store.get("chat-2") is None


def test_forex_flow_round_trip():
    store = SessionStore()
    store.create("chat-1")

    store.advance("chat-1", SessionStep.SELECT_INSTRUMENT, market="forex")
    store.advance("chat-1", SessionStep.SELECT_STRATEGY, instrument="EURUSD")
    session = store.advance("chat-1", SessionStep.PROCESSING, strategy="swing")

    assert session.processing
    assert (session.market, session.instrument, session.strategy) == ("forex", "EURUSD", "swing")

    done = store.advance("chat-1", SessionStep.SELECT_MARKET)
    assert done.step is SessionStep.SELECT_MARKET
    assert done.instrument is None
    assert not done.processing


def test_gold_skips_instrument_selection():
    store = SessionStore()
    store.create("chat-1")
    session = store.advance("chat-1", SessionStep.SELECT_STRATEGY, market="gold", instrument="XAUUSD")
    assert session.step is SessionStep.SELECT_STRATEGY


def test_illegal_transition():
    store = SessionStore()
    store.create("chat-1")
    with pytest.raises(InvalidTransitionError, match="select_market to processing"):
        store.advance("chat-1", SessionStep.PROCESSING)


def test_processing_twice_is_rejected():
    store = SessionStore()
    store.create("chat-1")
    store.advance("chat-1", SessionStep.SELECT_STRATEGY, instrument="XAUUSD")
    store.advance("chat-1", SessionStep.PROCESSING, strategy="scalping")
    with pytest.raises(InvalidTransitionError):
        store.advance("chat-1", SessionStep.PROCESSING, strategy="scalping")


def test_processing_requires_selections():
    store = SessionStore()
    store.create("chat-1")
    store.advance("chat-1", SessionStep.SELECT_INSTRUMENT, market="forex")
    store.advance("chat-1", SessionStep.SELECT_STRATEGY)
    with pytest.raises(InvalidTransitionError, match="instrument and strategy are required"):
        store.advance("chat-1", SessionStep.PROCESSING, strategy="swing")
    assert store.get("chat-1").step is SessionStep.SELECT_STRATEGY


def test_reset_and_unknown_session():
    store = SessionStore()
    store.create("chat-1")
    store.advance("chat-1", SessionStep.SELECT_INSTRUMENT, market="forex")
    assert store.reset("chat-1").step is SessionStep.SELECT_MARKET

    with pytest.raises(KeyError):
        store.advance("nobody", SessionStep.SELECT_INSTRUMENT)
    with pytest.raises(ValueError, match="Unknown session fields"):
        store.advance("chat-1", SessionStep.SELECT_INSTRUMENT, pair="EURUSD")


def test_concurrent_sessions():
    store = SessionStore()

    def walk(n):
        sid = f"chat-{n}"
        store.create(sid)
        store.advance(sid, SessionStep.SELECT_STRATEGY, instrument="XAUUSD")
        store.advance(sid, SessionStep.PROCESSING, strategy="swing")

    threads = [threading.Thread(target=walk, args=(n,)) for n in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 20
    assert all(store.get(f"chat-{n}").processing for n in range(20))
