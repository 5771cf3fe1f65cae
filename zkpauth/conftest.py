import pytest

from zkpauth.auth.auth_manager import AuthManager
from zkpauth.crypto.group import known_group


@pytest.fixture
def toy_group():
    """p = 23, q = 11; 4 and 2 both have order 11"""
    return known_group(p=23, q=11, g=4, h=2)


@pytest.fixture
def small_group():
    """p = 2039, q = 1019; small enough to measure guessing odds"""
    return known_group(p=2039, q=1019, g=4, h=9)


@pytest.fixture
def manager(small_group):
    manager = AuthManager()
    manager.install_parameters(small_group)
    return manager
