"""Smoke tests: the public API imports and wires together."""

import stellanow_sdk


def test_public_api_imports():
    assert stellanow_sdk.__version__
    for name in stellanow_sdk.__all__:
        assert hasattr(stellanow_sdk, name), name


def test_sdk_constructs_with_fakes(project_info, auth_strategy, env_config, transport):
    sink = stellanow_sdk.StellaNowMqttSink(auth_strategy, project_info, env_config, transport=transport)
    sdk = stellanow_sdk.StellaNowSDK(project_info, sink, stellanow_sdk.FifoQueue())
    assert sdk.messages_in_queue_count() == 0
    assert sdk.messages_in_flight_count() == 0
    assert not sdk.is_running
