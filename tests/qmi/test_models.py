"""Tests for QMI data models and exceptions."""

import dataclasses

import pytest

from tnsprobe.qmi import (
    DecodeError,
    IndicationEvent,
    IndicationKind,
    IndicationStream,
    LostFrameSyncInfo,
    LostFrameSyncReason,
    MessageId,
    Plmn,
    PulseAlignType,
    PulseTriggerAction,
    QmiResponse,
    QmiResult,
    RetryExhaustedError,
    ServiceUnavailableError,
    ServingSystemInfo,
    SigInfo,
    SyncPulseConfig,
    TnsProbeError,
    TransportError,
)


class TestSyncPulseConfig:
    """Test sync pulse configuration values."""

    def test_defaults(self):
        """Test default configuration."""
        config = SyncPulseConfig()

        assert config.pulse_period == 10
        assert config.start_sfn == 1024
        assert config.report_period == 10
        assert config.pulse_align_type == PulseAlignType.FRAME_BOUNDARY
        assert config.pulse_trigger_action == PulseTriggerAction.TRIGGER
        assert config.pulse_get_cxo_count is False

    def test_clamped_saturates_at_maximum(self):
        """Test oversized values saturate at their bounds."""
        config = SyncPulseConfig.clamped(pulse_period=9999, start_sfn=5000, report_period=200)

        assert config.pulse_period == 128
        assert config.start_sfn == 1024
        assert config.report_period == 128

    def test_clamped_negative_values_become_zero(self):
        """Test negative values are raised to zero."""
        config = SyncPulseConfig.clamped(pulse_period=-1, start_sfn=-20, report_period=-3)

        assert config.pulse_period == 0
        assert config.start_sfn == 0
        assert config.report_period == 0

    def test_clamped_invalid_enum_values_fall_back(self):
        """Test enum and flag values outside 0/1 fall back to 0."""
        config = SyncPulseConfig.clamped(
            pulse_align_type=7,
            pulse_trigger_action=2,
            pulse_get_cxo_count=5,
        )

        assert config.pulse_align_type == PulseAlignType.FRAME_BOUNDARY
        assert config.pulse_trigger_action == PulseTriggerAction.TRIGGER
        assert config.pulse_get_cxo_count is False

    def test_clamped_accepts_valid_enum_values(self):
        """Test value 1 selects the alternative enum members."""
        config = SyncPulseConfig.clamped(
            pulse_align_type=1,
            pulse_trigger_action=1,
            pulse_get_cxo_count=1,
        )

        assert config.pulse_align_type == PulseAlignType.UTC_SECOND_BOUNDARY
        assert config.pulse_trigger_action == PulseTriggerAction.SKIP
        assert config.pulse_get_cxo_count is True

    def test_to_request(self):
        """Test request rendering uses plain integers."""
        config = SyncPulseConfig.clamped(pulse_period=20, start_sfn=100, pulse_get_cxo_count=1)

        assert config.to_request() == {
            "pulse_period": 20,
            "start_sfn": 100,
            "report_period": 10,
            "pulse_align_type": 0,
            "pulse_trigger_action": 0,
            "pulse_get_cxo_count": 1,
        }

    def test_stop_request(self):
        """Test stop request only carries a zero pulse period."""
        assert SyncPulseConfig.stop_request() == {"pulse_period": 0}

    def test_to_dict_uses_enum_names(self):
        """Test dictionary conversion."""
        data = SyncPulseConfig().to_dict()

        assert data["pulse_align_type"] == "FRAME_BOUNDARY"
        assert data["pulse_trigger_action"] == "TRIGGER"
        assert data["pulse_get_cxo_count"] is False

    def test_frozen(self):
        """Test configuration is immutable."""
        config = SyncPulseConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.pulse_period = 20

    def test_summary(self):
        """Test one-line summary."""
        summary = SyncPulseConfig().summary()

        assert "pulse_period=10" in summary
        assert "start_sfn=1024" in summary


class TestIndicationEvent:
    """Test raw indication events."""

    def test_kind_from_message_id(self):
        """Test known message IDs map to their kind."""
        event = IndicationEvent(MessageId.SYS_INFO_IND, b"{}")

        assert event.kind == IndicationKind.SYS_INFO
        assert event.stream == IndicationStream.NAS

    def test_pulse_report_kind(self):
        """Test pulse report mapping."""
        event = IndicationEvent(
            MessageId.NR5G_TIME_SYNC_PULSE_REPORT_IND,
            b"{}",
            IndicationStream.SYNC_PULSE,
        )

        assert event.kind == IndicationKind.TIME_SYNC_PULSE_REPORT

    def test_unknown_message_id(self):
        """Test unknown message IDs are unhandled."""
        assert IndicationEvent(0x9999, b"").kind == IndicationKind.UNHANDLED


class TestPayloads:
    """Test decoded payload models."""

    def test_plmn_two_digit_mnc(self):
        """Test PLMN formatting with a two-digit MNC."""
        assert Plmn(mcc=310, mnc=26).format() == "310-26"

    def test_plmn_three_digit_mnc(self):
        """Test PLMN formatting with a three-digit MNC."""
        assert Plmn(mcc=310, mnc=260).format() == "310-260"

    def test_plmn_pcs_digit(self):
        """Test PCS digit forces three MNC digits."""
        assert Plmn(mcc=1, mnc=5, mnc_includes_pcs_digit=True).format() == "001-005"

    def test_serving_system_from_dict(self):
        """Test serving system decoding."""
        info = ServingSystemInfo.from_dict(
            {
                "registration_state": 1,
                "radio_if": [0x0C],
                "current_plmn": {"mcc": 310, "mnc": 260, "description": "Test"},
                "cell_id": 12345,
            }
        )

        assert info.registration_name == "REGISTERED"
        assert info.radio_if == [0x0C]
        assert info.current_plmn.format() == "310-260"
        assert info.cell_id == 12345
        assert info.tac is None

    def test_serving_system_unknown_registration(self):
        """Test unknown registration state label."""
        assert ServingSystemInfo(registration_state=42).registration_name == "UNKNOWN"

    def test_sig_info_partial(self):
        """Test signal info with only NR5G metrics."""
        info = SigInfo.from_dict({"nr5g": {"rsrp": -90, "rsrq": -11, "snr": 15}})

        assert info.lte is None
        assert info.nr5g.rsrp == -90

    def test_lost_frame_sync_reason(self):
        """Test lost frame sync reason mapping."""
        info = LostFrameSyncInfo.from_dict({"reason": 4})

        assert info.reason == LostFrameSyncReason.STALE_SIB9

    def test_lost_frame_sync_unknown_reason(self):
        """Test unknown reason codes map to UNKNOWN."""
        assert LostFrameSyncReason.from_code(42) == LostFrameSyncReason.UNKNOWN
        assert LostFrameSyncInfo(reason_code=3).reason == LostFrameSyncReason.OOS

    def test_lost_frame_sync_without_reason(self):
        """Test absent reason."""
        assert LostFrameSyncInfo.from_dict({}).reason is None

    def test_qmi_response_success(self):
        """Test response result checks."""
        assert QmiResponse().success
        assert not QmiResponse(QmiResult.FAILURE, error=0x10).success


class TestExceptions:
    """Test exception messages and hierarchy."""

    def test_transport_error_with_code(self):
        """Test transport error includes the code."""
        error = TransportError("send failed", code=3)

        assert error.code == 3
        assert str(error) == "send failed (err=3)"

    def test_decode_error(self):
        """Test decode error message."""
        error = DecodeError(MessageId.SYS_INFO_IND, "truncated")

        assert str(error) == "Failed to decode msg_id=0x004E: truncated"
        assert error.reason == "truncated"

    def test_service_unavailable(self):
        """Test service unavailable message."""
        error = ServiceUnavailableError("NAS", "no service object")

        assert error.service == "NAS"
        assert "NAS service not available" in str(error)

    def test_retry_exhausted(self):
        """Test retry exhausted message."""
        assert str(RetryExhaustedError(3)) == "Sync pulse configuration failed after 3 attempt(s)"

    def test_hierarchy(self):
        """Test all errors share a base class."""
        for error in (
            TransportError("x"),
            DecodeError(1, "x"),
            ServiceUnavailableError("NAS"),
            RetryExhaustedError(1),
        ):
            assert isinstance(error, TnsProbeError)
