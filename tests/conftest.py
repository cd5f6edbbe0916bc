"""Test configuration and fixtures for the library catalog API."""

from tests.fixtures import *  # noqa: F401,F403
