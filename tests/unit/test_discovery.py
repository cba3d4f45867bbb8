"""
Unit tests for discovery.py - The discovery gate
"""
from unittest.mock import MagicMock, patch

from nearclip.common.discovery import DiscoveryGate, ServiceAdvertiser


class TestDiscoveryGate:
    """Tests for DiscoveryGate"""

    def test_initial_state(self):
        assert DiscoveryGate().is_enabled() is False
        assert DiscoveryGate(enabled=True).is_enabled() is True

    def test_open_close(self):
        gate = DiscoveryGate()
        gate.open()
        assert gate.is_enabled()
        gate.close()
        assert not gate.is_enabled()

    def test_listeners_fire_once_per_close(self):
        gate = DiscoveryGate(enabled=True)
        listener = MagicMock()
        gate.add_close_listener(listener)

        gate.close()
        gate.close()
        assert listener.call_count == 1

        gate.open()
        gate.close()
        assert listener.call_count == 2

    def test_failing_listener_does_not_block_others(self):
        gate = DiscoveryGate(enabled=True)
        second = MagicMock()
        gate.add_close_listener(MagicMock(side_effect=RuntimeError("boom")))
        gate.add_close_listener(second)

        gate.close()
        second.assert_called_once()
        assert not gate.is_enabled()


class TestServiceAdvertiser:
    """Tests for ServiceAdvertiser with Zeroconf mocked out"""

    @patch('nearclip.common.discovery.get_local_ip', return_value='192.168.1.20')
    @patch('nearclip.common.discovery.Zeroconf')
    def test_start_stop(self, zeroconf_cls, _ip):
        advertiser = ServiceAdvertiser(port=9876, device_name="desk")
        advertiser.start()
        assert advertiser.running
        zc = zeroconf_cls.return_value
        zc.register_service.assert_called_once()
        info = zc.register_service.call_args[0][0]
        assert info.port == 9876

        advertiser.start()
        assert zeroconf_cls.call_count == 1

        advertiser.stop()
        assert not advertiser.running
        zc.unregister_service.assert_called_once()
        zc.close.assert_called_once()

    def test_stop_when_not_running(self):
        ServiceAdvertiser().stop()
