import pytest

pytest_plugins = ["hazkey_client.testing.stub_server"]


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if {"hazkey_server", "echo_server"} & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
