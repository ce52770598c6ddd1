"""Tests for indication routing."""

import logging
from unittest.mock import Mock

import pytest

from tnsprobe.qmi import (
    IndicationEvent,
    IndicationStream,
    MessageId,
    ServiceStatus,
    SysInfo,
    TimeSyncPulseReport,
    encode_payload,
)
from tnsprobe.tns import IndicationRouter, ReadinessGate


def nas_event(message_id, data):
    return IndicationEvent(message_id, encode_payload(data), IndicationStream.NAS)


def pulse_event(message_id, data):
    return IndicationEvent(message_id, encode_payload(data), IndicationStream.SYNC_PULSE)


@pytest.fixture
def gate():
    """Mock readiness gate."""
    return Mock(spec=ReadinessGate)


@pytest.fixture
def router(gate, provider):
    """Router decoding both streams through simulated clients."""
    return IndicationRouter(
        gate,
        {
            IndicationStream.NAS: provider.acquire("nas", Mock()),
            IndicationStream.SYNC_PULSE: provider.acquire("sync_pulse", Mock()),
        },
    )


class TestSysInfoRouting:
    """Test SYS_INFO drives the readiness gate."""

    def test_service_opens_gate(self, router, gate):
        """Test status 2 marks NR5G ready."""
        decoded = router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": 2}))

        assert isinstance(decoded, SysInfo)
        gate.set_ready.assert_called_once_with(True)

    @pytest.mark.parametrize(
        "status",
        [ServiceStatus.NO_SERVICE, ServiceStatus.LIMITED, ServiceStatus.POWER_SAVE],
    )
    def test_other_status_closes_gate(self, router, gate, status):
        """Test any other status marks NR5G not ready."""
        router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": int(status)}))

        gate.set_ready.assert_called_once_with(False)

    def test_missing_status_ignored(self, router, gate):
        """Test SYS_INFO without NR5G status leaves the gate alone."""
        router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_cell_id": 7}))

        gate.set_ready.assert_not_called()

    def test_repeated_service_single_transition(self, provider):
        """Test repeated status 2 causes one transition."""
        gate = ReadinessGate()
        router = IndicationRouter(gate, {IndicationStream.NAS: provider.acquire("nas", Mock())})
        transitions = []
        original = gate.set_ready
        gate.set_ready = lambda ready: transitions.append(original(ready))

        for _ in range(3):
            router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": 2}))

        assert gate.is_ready
        assert transitions == [True, False, False]
        assert router.stats["sys_info"] == 3


class TestUnhandledAndErrors:
    """Test indications that are ignored or dropped."""

    def test_unknown_message(self, router, gate):
        """Test unknown messages are ignored without side effects."""
        assert router.handle(nas_event(0x9999, {"x": 1})) is None

        gate.set_ready.assert_not_called()
        assert router.stats["unhandled"] == 1

    def test_cross_stream_ignored(self, router, gate):
        """Test NAS indications seen on the sync pulse client are ignored."""
        assert router.handle(pulse_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": 2})) is None

        gate.set_ready.assert_not_called()
        assert router.stats["unhandled"] == 1

    def test_decode_error_dropped(self, router, gate, caplog):
        """Test undecodable payloads are logged and dropped."""
        event = IndicationEvent(MessageId.SYS_INFO_IND, b"garbage", IndicationStream.NAS)

        with caplog.at_level(logging.ERROR, logger="tnsprobe.tns.router"):
            assert router.handle(event) is None

        gate.set_ready.assert_not_called()
        assert router.stats["dropped"] == 1
        assert "Failed to decode SYS_INFO" in caplog.text

    def test_missing_decoder_dropped(self, gate):
        """Test events without a decoder are dropped."""
        router = IndicationRouter(gate)

        assert router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": 2})) is None
        assert router.stats["dropped"] == 1

    def test_register_decoder(self, gate, provider):
        """Test decoders can be registered after construction."""
        router = IndicationRouter(gate)
        router.register_decoder(IndicationStream.NAS, provider.acquire("nas", Mock()))

        router.handle(nas_event(MessageId.SYS_INFO_IND, {"nr5g_srv_status": 2}))

        gate.set_ready.assert_called_once_with(True)


class TestLoggingIndications:
    """Test indications that are only logged."""

    def test_serving_system(self, router, caplog):
        """Test serving system details are logged."""
        data = {
            "registration_state": 1,
            "ps_attach_state": 1,
            "radio_if": [0x0C],
            "current_plmn": {"mcc": 310, "mnc": 260, "description": "Test Network"},
            "cell_id": 0x1A2B,
        }

        with caplog.at_level(logging.INFO, logger="tnsprobe.tns.router"):
            router.handle(nas_event(MessageId.SERVING_SYSTEM_IND, data))

        assert "310-260" in caplog.text
        assert "REGISTERED" in caplog.text
        assert "NR5G" in caplog.text
        assert router.stats["serving_system"] == 1

    def test_sig_info(self, router, caplog):
        """Test signal metrics are logged."""
        data = {"lte": {"rssi": -60, "rsrq": -9, "rsrp": -85, "snr": 120}}

        with caplog.at_level(logging.INFO, logger="tnsprobe.tns.router"):
            router.handle(nas_event(MessageId.SIG_INFO_IND, data))

        assert "[LTE] RSSI : -60" in caplog.text

    def test_operator_name(self, router, caplog):
        """Test operator names are logged."""
        with caplog.at_level(logging.INFO, logger="tnsprobe.tns.router"):
            router.handle(nas_event(MessageId.OPERATOR_NAME_DATA_IND, {"plmn_name": "Carrier"}))

        assert "Operator PLMN name : Carrier" in caplog.text

    def test_time_sync_pulse_report(self, router, caplog):
        """Test pulse report fields are logged."""
        data = {"sfn": 512, "leapseconds": 18, "is_cxo_count_present": True, "cxo_count": 99}

        with caplog.at_level(logging.INFO, logger="tnsprobe.tns.router"):
            decoded = router.handle(pulse_event(MessageId.NR5G_TIME_SYNC_PULSE_REPORT_IND, data))

        assert isinstance(decoded, TimeSyncPulseReport)
        assert "sfn = 512" in caplog.text
        assert "cxo_count = 99" in caplog.text
        assert router.stats["time_sync_pulse_report"] == 1

    @pytest.mark.parametrize("code,name", [(0, "RLF"), (3, "OOS"), (5, "NO_SIB9"), (42, "UNKNOWN")])
    def test_lost_frame_sync(self, router, caplog, code, name):
        """Test lost frame sync reasons are logged as errors."""
        with caplog.at_level(logging.ERROR, logger="tnsprobe.tns.router"):
            router.handle(pulse_event(MessageId.NR5G_LOST_FRAME_SYNC_IND, {"reason": code}))

        assert f"NR5G Lost Frame Sync: reason={name} ({code})" in caplog.text
