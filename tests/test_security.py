from ip_block.security import ActionTokens, check_admin_credentials, check_admin_token
from ip_block.store import MemoryStore

from fakes import FakeClock


def make_tokens(lifetime: int = 100):
    clock = FakeClock()
    return ActionTokens(MemoryStore(clock=clock), "secret", lifetime, clock=clock), clock


def test_token_verifies_once():
    tokens, _ = make_tokens()
    token = tokens.issue("ip_block_unblock_action")
    assert tokens.verify("ip_block_unblock_action", token)
    assert not tokens.verify("ip_block_unblock_action", token)


def test_token_is_bound_to_action_and_secret():
    tokens, clock = make_tokens()
    token = tokens.issue("ip_block_unblock_action")
    assert not tokens.verify("ip_block_remove_log", token)

    other = ActionTokens(MemoryStore(clock=clock), "other-secret", 100, clock=clock)
    assert not other.verify("ip_block_unblock_action", token)


def test_token_expires_after_lifetime():
    tokens, clock = make_tokens(lifetime=100)
    token = tokens.issue("ip_block_remove_log")
    clock.advance(101)
    assert not tokens.verify("ip_block_remove_log", token)


def test_token_survives_half_lifetime():
    tokens, clock = make_tokens(lifetime=100)
    token = tokens.issue("ip_block_remove_log")
    clock.advance(49)
    assert tokens.verify("ip_block_remove_log", token)


def test_malformed_tokens_are_rejected():
    tokens, _ = make_tokens()
    for bad in ("", None, "abc", "a.b.c", "a.1"):
        assert not tokens.verify("ip_block_remove_log", bad)


def test_check_admin_token():
    assert check_admin_token("s3cret", "s3cret")
    assert not check_admin_token("nope", "s3cret")
    assert not check_admin_token(None, "s3cret")
    assert not check_admin_token("anything", None)


def test_check_admin_credentials():
    assert check_admin_credentials("admin", "s3cret", "admin", "s3cret")
    assert not check_admin_credentials("root", "s3cret", "admin", "s3cret")
    assert not check_admin_credentials("admin", "nope", "admin", "s3cret")
    assert not check_admin_credentials("admin", "", "admin", None)
