"""Tests for the simulated NAS service."""

import pytest
from unittest.mock import Mock

from tnsprobe.qmi import (
    ClientError,
    DecodeError,
    MessageId,
    NAS_INDICATIONS,
    QmiResponse,
    QmiResult,
    ServiceStatus,
    ServiceUnavailableError,
    ServingSystemInfo,
    SimulatedServiceProvider,
    SyncPulseConfig,
    SysInfo,
    TimeSyncPulseReport,
    TransportError,
    encode_payload,
)


class TestSimulatedProvider:
    """Test client acquisition and indication delivery."""

    def test_acquire_unavailable(self):
        """Test acquisition fails when the service is offline."""
        sim = SimulatedServiceProvider(available=False)

        with pytest.raises(ServiceUnavailableError):
            sim.acquire("nas", Mock())

    def test_unregistered_indication_dropped(self, provider):
        """Test indications are only delivered once registered."""
        callback = Mock()
        provider.acquire("nas", callback)

        assert provider.set_nr5g_status(ServiceStatus.SERVICE) == 0
        callback.assert_not_called()

    def test_indication_fanned_out(self, provider):
        """Test registered indications reach every active client."""
        nas_callback = Mock()
        pulse_callback = Mock()
        nas = provider.acquire("nas", nas_callback)
        provider.acquire("sync_pulse", pulse_callback)
        nas.subscribe(NAS_INDICATIONS)

        delivered = provider.push_indication(MessageId.SIG_INFO_IND, {"nr5g": {"rsrp": -90, "rsrq": -10, "snr": 5}})

        assert delivered == 2
        nas_callback.assert_called_once()
        pulse_callback.assert_called_once()
        message_id, payload = nas_callback.call_args[0]
        assert message_id == MessageId.SIG_INFO_IND
        assert isinstance(payload, bytes)

    def test_subscribe_recorded(self, provider):
        """Test registration is recorded as a request."""
        nas = provider.acquire("nas", Mock())
        nas.subscribe([MessageId.SYS_INFO_IND])

        assert nas.requests == [
            (MessageId.INDICATION_REGISTER, {"indications": [int(MessageId.SYS_INFO_IND)]})
        ]

    def test_subscribe_error(self):
        """Test scripted registration failure."""
        sim = SimulatedServiceProvider(subscribe_error=TransportError("rejected", code=5))
        nas = sim.acquire("nas", Mock())

        with pytest.raises(TransportError, match="rejected"):
            nas.subscribe(NAS_INDICATIONS)

    def test_status_replayed_on_registration(self, provider):
        """Test a status set before registration is delivered afterwards."""
        callback = Mock()
        nas = provider.acquire("nas", callback)
        provider.set_nr5g_status(ServiceStatus.SERVICE)

        nas.subscribe(NAS_INDICATIONS)

        callback.assert_called_once()
        message_id, payload = callback.call_args[0]
        assert message_id == MessageId.SYS_INFO_IND
        assert nas.decode(message_id, payload, SysInfo).nr5g_srv_status == 2

    def test_fail_service_reports_error(self, provider):
        """Test simulated service-down error."""
        nas = provider.acquire("nas", Mock())
        on_error = Mock()
        nas.register_error_callback(on_error)

        provider.fail_service("nas")

        client, error = on_error.call_args[0]
        assert client is nas
        assert error.service_down
        assert error.code == ClientError.SERVICE_ERR


class TestSimulatedRequests:
    """Test request handling."""

    def test_configure_succeeds_by_default(self, provider):
        """Test default configure outcome."""
        client = provider.acquire("sync_pulse", Mock())
        request = SyncPulseConfig().to_request()

        response = client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, request)

        assert response.success
        assert client.requests == [(MessageId.SET_NR5G_SYNC_PULSE_GEN, request)]

    def test_scripted_outcomes(self):
        """Test scripted responses and exceptions are used in order."""
        sim = SimulatedServiceProvider(
            configure_outcomes=[QmiResponse(QmiResult.FAILURE, error=0x1A), TransportError("timeout")],
            pulse_report_interval=None,
        )
        client = sim.acquire("sync_pulse", Mock())
        request = SyncPulseConfig().to_request()

        assert not client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, request).success
        with pytest.raises(TransportError):
            client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, request)
        assert client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, request).success

    def test_unsupported_message(self, provider):
        """Test unsupported requests are rejected."""
        client = provider.acquire("nas", Mock())

        response = client.send_request(0x0999, {})

        assert response.result == QmiResult.FAILURE

    def test_released_client(self, provider):
        """Test a released client rejects requests."""
        client = provider.acquire("nas", Mock())
        client.release()
        client.release()

        assert client.is_released
        with pytest.raises(TransportError):
            client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, {"pulse_period": 0})

    def test_pulse_reports_emitted(self, wait_for):
        """Test pulse reports flow while generation is configured."""
        sim = SimulatedServiceProvider(pulse_report_interval=0.01)
        callback = Mock()
        client = sim.acquire("sync_pulse", callback)
        client.subscribe(NAS_INDICATIONS)
        try:
            client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, SyncPulseConfig().to_request())

            assert sim.pulse_generation_active
            assert wait_for(lambda: callback.call_count >= 2)
            message_id, payload = callback.call_args[0]
            report = client.decode(message_id, payload, TimeSyncPulseReport)
            assert report.leapseconds == 18

            client.send_request(MessageId.SET_NR5G_SYNC_PULSE_GEN, SyncPulseConfig.stop_request())
            assert not sim.pulse_generation_active
        finally:
            sim.close()


class TestSimulatedDecode:
    """Test payload decoding."""

    def test_decode(self, provider):
        """Test decoding into a payload model."""
        client = provider.acquire("nas", Mock())

        info = client.decode(MessageId.SYS_INFO_IND, encode_payload({"nr5g_srv_status": 1}), SysInfo)

        assert info.nr5g_srv_status == 1

    def test_decode_invalid_payload(self, provider):
        """Test malformed payloads raise DecodeError."""
        client = provider.acquire("nas", Mock())

        with pytest.raises(DecodeError, match="invalid payload"):
            client.decode(MessageId.SYS_INFO_IND, b"\xff\x00", SysInfo)

    def test_decode_missing_field(self, provider):
        """Test missing mandatory fields raise DecodeError."""
        client = provider.acquire("nas", Mock())

        with pytest.raises(DecodeError):
            client.decode(MessageId.SERVING_SYSTEM_IND, encode_payload({}), ServingSystemInfo)

    def test_decode_non_mapping(self, provider):
        """Test non-mapping payloads raise DecodeError."""
        client = provider.acquire("nas", Mock())

        with pytest.raises(DecodeError, match="not a TLV mapping"):
            client.decode(MessageId.SYS_INFO_IND, b"[1, 2]", SysInfo)
