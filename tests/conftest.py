"""Shared fixtures for hearth tests."""

import os

import pytest


@pytest.fixture(autouse=True)
def restore_environ():
    """Sessions write into os.environ; give each test a clean copy back."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)
