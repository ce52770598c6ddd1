"""QMI NAS client layer for tnsprobe.

This package holds the data models, the exception hierarchy and the
abstract transport the TNS workers talk to, plus a simulated NAS service.
The QMI wire encoding itself lives in the vendor client library.
"""

from tnsprobe.qmi.exceptions import (
    ConfigurationError,
    DecodeError,
    RetryExhaustedError,
    ServiceUnavailableError,
    TnsProbeError,
    TransportError,
)
from tnsprobe.qmi.models import (
    IndicationEvent,
    IndicationKind,
    IndicationStream,
    LostFrameSyncInfo,
    LostFrameSyncReason,
    MessageId,
    NAS_INDICATIONS,
    OperatorNameInfo,
    Plmn,
    PulseAlignType,
    PulseTriggerAction,
    QmiResponse,
    QmiResult,
    ServiceStatus,
    ServingSystemInfo,
    SigInfo,
    SyncPulseConfig,
    SysInfo,
    TimeSyncPulseReport,
)
from tnsprobe.qmi.simulated import SimulatedClient, SimulatedServiceProvider, encode_payload
from tnsprobe.qmi.transport import ClientError, QmiClient, ServiceProvider

__all__ = [
    # Transport
    "QmiClient",
    "ServiceProvider",
    "ClientError",
    "SimulatedClient",
    "SimulatedServiceProvider",
    "encode_payload",
    # Enums
    "MessageId",
    "QmiResult",
    "IndicationKind",
    "IndicationStream",
    "ServiceStatus",
    "LostFrameSyncReason",
    "PulseAlignType",
    "PulseTriggerAction",
    # Data Models
    "SyncPulseConfig",
    "QmiResponse",
    "IndicationEvent",
    "Plmn",
    "ServingSystemInfo",
    "SysInfo",
    "SigInfo",
    "OperatorNameInfo",
    "TimeSyncPulseReport",
    "LostFrameSyncInfo",
    # Constants
    "NAS_INDICATIONS",
    # Exceptions
    "TnsProbeError",
    "TransportError",
    "DecodeError",
    "ServiceUnavailableError",
    "RetryExhaustedError",
    "ConfigurationError",
]
