"""Shared pytest fixtures for giftly tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests off the network and out of the working tree.

    The composer is disabled unless a test sets OPENAI_API_KEY, and the JSON
    lead store writes under the test's tmp_path.
    """
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("LEADS_BACKEND", raising=False)
    monkeypatch.setenv("LEADS_FILE", str(tmp_path / "leads.json"))
    yield
