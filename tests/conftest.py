import pytest

from ehr_vault.policy import AccessPolicy
from ehr_vault.vault import FieldCipher, VaultConfig

TEST_SECRET = b"test-master-secret-for-ehr-vault"


@pytest.fixture
def config():
    """Vault configuration with a fixed test secret."""
    return VaultConfig(master_secret=TEST_SECRET)


@pytest.fixture
def cipher(config):
    """FieldCipher bound to the test secret."""
    return FieldCipher(config)


@pytest.fixture
def policy():
    """AccessPolicy with the default permission table."""
    return AccessPolicy()
