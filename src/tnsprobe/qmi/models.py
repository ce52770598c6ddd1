"""Data models for the QMI NAS client layer.

This module defines the message identifiers, enumerations and data classes
exchanged between the vendor transport and the TNS workers: the sync pulse
configuration, request responses, raw indication events and the decoded
indication payloads.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


# =============================================================================
# Message Identifiers
# =============================================================================


class MessageId(IntEnum):
    """QMI NAS message identifiers used by the probe."""

    INDICATION_REGISTER = 0x0003
    SERVING_SYSTEM_IND = 0x0024
    OPERATOR_NAME_DATA_IND = 0x003A
    SYS_INFO_IND = 0x004E
    SIG_INFO_IND = 0x0051
    SET_NR5G_SYNC_PULSE_GEN = 0x00E8
    NR5G_TIME_SYNC_PULSE_REPORT_IND = 0x00E9
    NR5G_LOST_FRAME_SYNC_IND = 0x00EA


# Indications requested from the modem at subscription time
NAS_INDICATIONS = frozenset(
    {
        MessageId.SYS_INFO_IND,
        MessageId.SIG_INFO_IND,
        MessageId.SERVING_SYSTEM_IND,
        MessageId.OPERATOR_NAME_DATA_IND,
        MessageId.NR5G_TIME_SYNC_PULSE_REPORT_IND,
        MessageId.NR5G_LOST_FRAME_SYNC_IND,
    }
)


# =============================================================================
# Enumerations
# =============================================================================


class QmiResult(IntEnum):
    """Result code carried in every QMI response."""

    SUCCESS = 0
    FAILURE = 1


class IndicationStream(Enum):
    """Client an indication was delivered on."""

    NAS = "nas"
    SYNC_PULSE = "sync_pulse"


class IndicationKind(Enum):
    """Tag of a received indication."""

    SERVING_SYSTEM = "serving_system"
    SYS_INFO = "sys_info"
    SIG_INFO = "sig_info"
    OPERATOR_NAME = "operator_name"
    TIME_SYNC_PULSE_REPORT = "time_sync_pulse_report"
    LOST_FRAME_SYNC = "lost_frame_sync"
    UNHANDLED = "unhandled"


KIND_BY_MESSAGE_ID: Dict[int, IndicationKind] = {
    MessageId.SERVING_SYSTEM_IND: IndicationKind.SERVING_SYSTEM,
    MessageId.SYS_INFO_IND: IndicationKind.SYS_INFO,
    MessageId.SIG_INFO_IND: IndicationKind.SIG_INFO,
    MessageId.OPERATOR_NAME_DATA_IND: IndicationKind.OPERATOR_NAME,
    MessageId.NR5G_TIME_SYNC_PULSE_REPORT_IND: IndicationKind.TIME_SYNC_PULSE_REPORT,
    MessageId.NR5G_LOST_FRAME_SYNC_IND: IndicationKind.LOST_FRAME_SYNC,
}


class ServiceStatus(IntEnum):
    """NR5G service status reported in SYS_INFO."""

    NO_SERVICE = 0
    LIMITED = 1
    SERVICE = 2
    LIMITED_REGIONAL = 3
    POWER_SAVE = 4


class RegistrationState(IntEnum):
    """Serving system registration state."""

    NOT_REGISTERED = 0
    REGISTERED = 1
    NOT_REGISTERED_SEARCHING = 2
    REGISTRATION_DENIED = 3
    REGISTRATION_UNKNOWN = 4


class LostFrameSyncReason(IntEnum):
    """Reason carried by an NR5G lost frame sync indication."""

    RLF = 0
    HANDOVER = 1
    RESELECTION = 2
    OOS = 3
    STALE_SIB9 = 4
    NO_SIB9 = 5
    UNKNOWN = 0xFF

    @classmethod
    def from_code(cls, code: int) -> "LostFrameSyncReason":
        """Map a raw reason code, falling back to UNKNOWN."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class PulseAlignType(IntEnum):
    """Boundary the generated pulse is aligned to."""

    FRAME_BOUNDARY = 0
    UTC_SECOND_BOUNDARY = 1


class PulseTriggerAction(IntEnum):
    """Whether the modem triggers or skips the pulse."""

    TRIGGER = 0
    SKIP = 1


# Human-readable labels used when logging serving system indications
RADIO_IF_NAMES: Dict[int, str] = {
    0x00: "NO_SVC",
    0x01: "CDMA_1X",
    0x02: "CDMA_1xEVDO",
    0x04: "GSM",
    0x05: "UMTS",
    0x08: "LTE",
    0x09: "TDSCDMA",
    0x0C: "NR5G",
}

DATA_CAPABILITY_NAMES: Dict[int, str] = {
    0x01: "GPRS",
    0x02: "EDGE",
    0x03: "HSDPA",
    0x04: "HSUPA",
    0x05: "WCDMA",
    0x06: "CDMA",
    0x07: "EVDO_REV_0",
    0x08: "EVDO_REV_A",
    0x09: "GSM",
    0x0A: "EVDO_REV_B",
    0x0B: "LTE",
    0x0C: "HSDPA+",
    0x0D: "DC_HSDPA+",
}

NW_NAME_SOURCE_NAMES: Dict[int, str] = {
    0: "UNKNOWN",
    1: "OPL_PNN",
    2: "CPHS_ONS",
    3: "NITZ",
    4: "SE13",
    5: "MCC_MNC",
    6: "SPN",
}

ATTACH_STATE_NAMES: Dict[int, str] = {0: "Unknown", 1: "Attached", 2: "Detached"}

SELECTED_NETWORK_NAMES: Dict[int, str] = {0: "Unknown", 1: "3GPP2", 2: "3GPP"}


# =============================================================================
# Sync Pulse Configuration
# =============================================================================


PULSE_PERIOD_MAX = 128
START_SFN_MAX = 1024
REPORT_PERIOD_MAX = 128
START_SFN_NEXT_AVAILABLE = 1024


def _clamp(value: int, maximum: int) -> int:
    if value < 0:
        return 0
    return min(value, maximum)


@dataclass(frozen=True)
class SyncPulseConfig:
    """NR5G sync pulse generation parameters.

    Attributes:
        pulse_period: Pulse period in units of 10 ms (0-128, 0 = stop).
        start_sfn: Starting system frame number (0-1024, 1024 = next available).
        report_period: Pulse report indication period in units of 10 ms
            (0-128, 0 = indications disabled).
        pulse_align_type: Frame or UTC second boundary alignment.
        pulse_trigger_action: Trigger or skip the pulse.
        pulse_get_cxo_count: Whether pulse reports carry the CXO count.
    """

    pulse_period: int = 10
    start_sfn: int = START_SFN_NEXT_AVAILABLE
    report_period: int = 10
    pulse_align_type: PulseAlignType = PulseAlignType.FRAME_BOUNDARY
    pulse_trigger_action: PulseTriggerAction = PulseTriggerAction.TRIGGER
    pulse_get_cxo_count: bool = False

    @classmethod
    def clamped(
        cls,
        pulse_period: int = 10,
        start_sfn: int = START_SFN_NEXT_AVAILABLE,
        report_period: int = 10,
        pulse_align_type: int = 0,
        pulse_trigger_action: int = 0,
        pulse_get_cxo_count: int = 0,
    ) -> "SyncPulseConfig":
        """Build a config, clamping every field into its valid range.

        Numeric fields saturate at their bounds. Enum and flag values that
        are not 0 or 1 fall back to 0.
        """
        align = int(pulse_align_type)
        action = int(pulse_trigger_action)
        cxo = int(pulse_get_cxo_count)
        return cls(
            pulse_period=_clamp(int(pulse_period), PULSE_PERIOD_MAX),
            start_sfn=_clamp(int(start_sfn), START_SFN_MAX),
            report_period=_clamp(int(report_period), REPORT_PERIOD_MAX),
            pulse_align_type=PulseAlignType(align if align in (0, 1) else 0),
            pulse_trigger_action=PulseTriggerAction(action if action in (0, 1) else 0),
            pulse_get_cxo_count=cxo == 1,
        )

    def to_request(self) -> Dict[str, int]:
        """Render the SET_NR5G_SYNC_PULSE_GEN request fields."""
        return {
            "pulse_period": self.pulse_period,
            "start_sfn": self.start_sfn,
            "report_period": self.report_period,
            "pulse_align_type": int(self.pulse_align_type),
            "pulse_trigger_action": int(self.pulse_trigger_action),
            "pulse_get_cxo_count": int(self.pulse_get_cxo_count),
        }

    @staticmethod
    def stop_request() -> Dict[str, int]:
        """Render the request that stops pulse generation."""
        return {"pulse_period": 0}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pulse_period": self.pulse_period,
            "start_sfn": self.start_sfn,
            "report_period": self.report_period,
            "pulse_align_type": self.pulse_align_type.name,
            "pulse_trigger_action": self.pulse_trigger_action.name,
            "pulse_get_cxo_count": self.pulse_get_cxo_count,
        }

    def summary(self) -> str:
        """One-line description used in log output."""
        return (
            f"pulse_period={self.pulse_period}, start_sfn={self.start_sfn}, "
            f"report_period={self.report_period}, "
            f"align_type={int(self.pulse_align_type)}, "
            f"trigger_action={int(self.pulse_trigger_action)}, "
            f"get_cxo={int(self.pulse_get_cxo_count)}"
        )


# =============================================================================
# Transport Models
# =============================================================================


@dataclass(frozen=True)
class QmiResponse:
    """Response to a synchronous QMI request."""

    result: QmiResult = QmiResult.SUCCESS
    error: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Check if the modem accepted the request."""
        return self.result == QmiResult.SUCCESS


@dataclass(frozen=True)
class IndicationEvent:
    """Raw indication as delivered by a QMI client."""

    message_id: int
    payload: bytes
    stream: IndicationStream = IndicationStream.NAS

    @property
    def kind(self) -> IndicationKind:
        """Resolve the indication tag from its message identifier."""
        return KIND_BY_MESSAGE_ID.get(self.message_id, IndicationKind.UNHANDLED)


# =============================================================================
# Decoded Indication Payloads
# =============================================================================


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else int(value)


@dataclass
class Plmn:
    """Public Land Mobile Network identifier."""

    mcc: int
    mnc: int
    description: str = ""
    mnc_includes_pcs_digit: bool = False

    def format(self) -> str:
        """Format as MCC-MNC, padding the MNC to two or three digits."""
        width = 3 if self.mnc_includes_pcs_digit or self.mnc > 99 else 2
        return f"{self.mcc:03d}-{self.mnc:0{width}d}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plmn":
        return cls(
            mcc=int(data["mcc"]),
            mnc=int(data["mnc"]),
            description=str(data.get("description", "")),
            mnc_includes_pcs_digit=bool(data.get("mnc_includes_pcs_digit", False)),
        )


@dataclass
class ServingSystemInfo:
    """Decoded SERVING_SYSTEM indication."""

    registration_state: int
    cs_attach_state: int = 0
    ps_attach_state: int = 0
    selected_network: int = 0
    radio_if: List[int] = field(default_factory=list)
    roaming_indicator: Optional[int] = None
    current_plmn: Optional[Plmn] = None
    data_capabilities: List[int] = field(default_factory=list)
    lac: Optional[int] = None
    cell_id: Optional[int] = None
    tac: Optional[int] = None
    time_zone: Optional[int] = None
    nw_name_source: Optional[int] = None

    @property
    def registration_name(self) -> str:
        try:
            return RegistrationState(self.registration_state).name
        except ValueError:
            return "UNKNOWN"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServingSystemInfo":
        plmn = data.get("current_plmn")
        return cls(
            registration_state=int(data["registration_state"]),
            cs_attach_state=int(data.get("cs_attach_state", 0)),
            ps_attach_state=int(data.get("ps_attach_state", 0)),
            selected_network=int(data.get("selected_network", 0)),
            radio_if=[int(r) for r in data.get("radio_if", [])],
            roaming_indicator=_opt_int(data, "roaming_indicator"),
            current_plmn=Plmn.from_dict(plmn) if plmn is not None else None,
            data_capabilities=[int(c) for c in data.get("data_capabilities", [])],
            lac=_opt_int(data, "lac"),
            cell_id=_opt_int(data, "cell_id"),
            tac=_opt_int(data, "tac"),
            time_zone=_opt_int(data, "time_zone"),
            nw_name_source=_opt_int(data, "nw_name_source"),
        )


@dataclass
class SysInfo:
    """Decoded SYS_INFO indication (NR5G subset)."""

    nr5g_srv_status: Optional[int] = None
    nr5g_srv_domain: Optional[int] = None
    nr5g_cell_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SysInfo":
        return cls(
            nr5g_srv_status=_opt_int(data, "nr5g_srv_status"),
            nr5g_srv_domain=_opt_int(data, "nr5g_srv_domain"),
            nr5g_cell_id=_opt_int(data, "nr5g_cell_id"),
        )


@dataclass
class LteSignal:
    """LTE signal metrics."""

    rssi: int
    rsrq: int
    rsrp: int
    snr: int


@dataclass
class Nr5gSignal:
    """NR5G signal metrics."""

    rsrp: int
    rsrq: int
    snr: int


@dataclass
class SigInfo:
    """Decoded SIG_INFO indication."""

    lte: Optional[LteSignal] = None
    nr5g: Optional[Nr5gSignal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SigInfo":
        lte = data.get("lte")
        nr5g = data.get("nr5g")
        return cls(
            lte=LteSignal(**{k: int(v) for k, v in lte.items()}) if lte else None,
            nr5g=Nr5gSignal(**{k: int(v) for k, v in nr5g.items()}) if nr5g else None,
        )


@dataclass
class OperatorNameInfo:
    """Decoded OPERATOR_NAME_DATA indication.

    Names are carried as already decoded text; GSM 7-bit and UCS2 decoding
    is the transport's concern.
    """

    service_provider_name: Optional[str] = None
    plmn_name: Optional[str] = None
    nitz_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperatorNameInfo":
        return cls(
            service_provider_name=data.get("service_provider_name"),
            plmn_name=data.get("plmn_name"),
            nitz_name=data.get("nitz_name"),
        )


@dataclass
class TimeSyncPulseReport:
    """Decoded NR5G_TIME_SYNC_PULSE_REPORT indication."""

    sfn: Optional[int] = None
    nta: Optional[int] = None
    nta_offset: Optional[int] = None
    leapseconds: Optional[int] = None
    utc_time: Optional[int] = None
    gps_time: Optional[int] = None
    is_cxo_count_present: bool = False
    cxo_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSyncPulseReport":
        return cls(
            sfn=_opt_int(data, "sfn"),
            nta=_opt_int(data, "nta"),
            nta_offset=_opt_int(data, "nta_offset"),
            leapseconds=_opt_int(data, "leapseconds"),
            utc_time=_opt_int(data, "utc_time"),
            gps_time=_opt_int(data, "gps_time"),
            is_cxo_count_present=bool(data.get("is_cxo_count_present", False)),
            cxo_count=_opt_int(data, "cxo_count"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class LostFrameSyncInfo:
    """Decoded NR5G_LOST_FRAME_SYNC indication."""

    reason_code: Optional[int] = None

    @property
    def reason(self) -> Optional[LostFrameSyncReason]:
        if self.reason_code is None:
            return None
        return LostFrameSyncReason.from_code(self.reason_code)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LostFrameSyncInfo":
        return cls(reason_code=_opt_int(data, "reason"))
