"""Indication routing for the TNS listener.

This module decodes NAS and sync pulse indications and logs them. SYS_INFO
is the only indication with a side effect: its NR5G service status drives
the readiness gate. Decode failures and unknown messages are logged and
dropped; ``handle`` never raises.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, Optional, Tuple, Type

from tnsprobe.qmi.exceptions import DecodeError
from tnsprobe.qmi.models import (
    ATTACH_STATE_NAMES,
    DATA_CAPABILITY_NAMES,
    NW_NAME_SOURCE_NAMES,
    RADIO_IF_NAMES,
    SELECTED_NETWORK_NAMES,
    IndicationEvent,
    IndicationKind,
    IndicationStream,
    LostFrameSyncInfo,
    OperatorNameInfo,
    ServiceStatus,
    ServingSystemInfo,
    SigInfo,
    SysInfo,
    TimeSyncPulseReport,
)
from tnsprobe.qmi.transport import QmiClient
from tnsprobe.tns.gate import ReadinessGate

logger = logging.getLogger(__name__)


class IndicationRouter:
    """Dispatches indications to typed decoders.

    Each stream carries its own set of indications: NAS registration and
    signal data on the NAS client, pulse reports and lost sync on the sync
    pulse client. Both clients share the NAS service, so each also sees the
    other's indications; those are ignored.

    Example:
        >>> router = IndicationRouter(gate)
        >>> router.register_decoder(IndicationStream.NAS, nas_client)
        >>> router.handle(IndicationEvent(MessageId.SYS_INFO_IND, payload))
    """

    def __init__(
        self,
        gate: ReadinessGate,
        decoders: Optional[Dict[IndicationStream, QmiClient]] = None,
    ):
        """Initialize router.

        Args:
            gate: Readiness gate driven by SYS_INFO.
            decoders: Client used to decode each stream's payloads.
        """
        self.gate = gate
        self._decoders: Dict[IndicationStream, QmiClient] = dict(decoders or {})
        self.stats: Counter = Counter()

        self._routes: Dict[
            Tuple[IndicationStream, IndicationKind],
            Tuple[Type[Any], Callable[[Any], None]],
        ] = {
            (IndicationStream.NAS, IndicationKind.SYS_INFO): (SysInfo, self._on_sys_info),
            (IndicationStream.NAS, IndicationKind.SERVING_SYSTEM): (
                ServingSystemInfo,
                self._on_serving_system,
            ),
            (IndicationStream.NAS, IndicationKind.SIG_INFO): (SigInfo, self._on_sig_info),
            (IndicationStream.NAS, IndicationKind.OPERATOR_NAME): (
                OperatorNameInfo,
                self._on_operator_name,
            ),
            (IndicationStream.SYNC_PULSE, IndicationKind.TIME_SYNC_PULSE_REPORT): (
                TimeSyncPulseReport,
                self._on_time_sync_pulse_report,
            ),
            (IndicationStream.SYNC_PULSE, IndicationKind.LOST_FRAME_SYNC): (
                LostFrameSyncInfo,
                self._on_lost_frame_sync,
            ),
        }

    def register_decoder(self, stream: IndicationStream, client: QmiClient) -> None:
        """Set the client used to decode payloads of ``stream``."""
        self._decoders[stream] = client

    def handle(self, event: IndicationEvent) -> Optional[Any]:
        """Decode and process one indication.

        Returns:
            The decoded payload, or None if the event was ignored or dropped.
        """
        logger.debug(
            "%s indication received: msg_id=0x%04X, len=%d",
            event.stream.value,
            event.message_id,
            len(event.payload),
        )

        route = self._routes.get((event.stream, event.kind))
        if route is None:
            logger.debug(
                "Unhandled %s indication: msg_id=0x%04X",
                event.stream.value,
                event.message_id,
            )
            self.stats["unhandled"] += 1
            return None

        decoder = self._decoders.get(event.stream)
        if decoder is None:
            logger.error("No decoder for %s stream, dropping msg_id=0x%04X", event.stream.value, event.message_id)
            self.stats["dropped"] += 1
            return None

        shape, handler = route
        try:
            decoded = decoder.decode(event.message_id, event.payload, shape)
        except DecodeError as e:
            logger.error("Failed to decode %s: %s", event.kind.name, e)
            self.stats["dropped"] += 1
            return None

        try:
            handler(decoded)
        except Exception as e:
            logger.error("Error handling %s indication: %s", event.kind.name, e)
            self.stats["dropped"] += 1
            return None

        self.stats[event.kind.value] += 1
        return decoded

    # =========================================================================
    # NAS stream
    # =========================================================================

    def _on_sys_info(self, info: SysInfo) -> None:
        if info.nr5g_srv_status is None:
            return

        logger.info(
            "[NR5G] Service Status: %d (0=NoSrv,1=Limited,2=Srv)",
            info.nr5g_srv_status,
        )
        self.gate.set_ready(info.nr5g_srv_status == ServiceStatus.SERVICE)

    def _on_serving_system(self, info: ServingSystemInfo) -> None:
        logger.info("=== Serving System Indication ===")
        logger.info("  Registration State : %d (%s)", info.registration_state, info.registration_name)
        logger.info(
            "  CS Attach State    : %d (%s)",
            info.cs_attach_state,
            ATTACH_STATE_NAMES.get(info.cs_attach_state, "Unknown"),
        )
        logger.info(
            "  PS Attach State    : %d (%s)",
            info.ps_attach_state,
            ATTACH_STATE_NAMES.get(info.ps_attach_state, "Unknown"),
        )
        logger.info(
            "  Selected Network   : %d (%s)",
            info.selected_network,
            SELECTED_NETWORK_NAMES.get(info.selected_network, "Unknown"),
        )
        for i, radio_if in enumerate(info.radio_if):
            logger.info("  Radio IF [%d]       : 0x%02X (%s)", i, radio_if, RADIO_IF_NAMES.get(radio_if, "Unknown"))

        if info.roaming_indicator is not None:
            logger.info("  Roaming Indicator  : %d (0=On/Roaming,1=Off/Home)", info.roaming_indicator)

        if info.current_plmn is not None:
            logger.info("  PLMN               : %s", info.current_plmn.format())
            logger.info("  Network Desc       : %s", info.current_plmn.description)

        for i, cap in enumerate(info.data_capabilities):
            logger.info("  Data Cap [%d]       : 0x%02X (%s)", i, cap, DATA_CAPABILITY_NAMES.get(cap, "Unknown"))

        if info.lac is not None:
            logger.info("  LAC                : %d", info.lac)
        if info.cell_id is not None:
            logger.info("  Cell ID            : %d (0x%X)", info.cell_id, info.cell_id)
        if info.tac is not None:
            logger.info("  TAC (LTE)          : %d", info.tac)
        if info.time_zone is not None:
            logger.info("  Time Zone          : %d (x15 min)", info.time_zone)
        if info.nw_name_source is not None:
            logger.info(
                "  NW Name Source     : %d (%s)",
                info.nw_name_source,
                NW_NAME_SOURCE_NAMES.get(info.nw_name_source, "Unknown"),
            )

    def _on_sig_info(self, info: SigInfo) -> None:
        if info.lte is not None:
            logger.info(
                "[LTE] RSSI : %d, RSRQ : %d, RSRP : %d, SNR : %d",
                info.lte.rssi,
                info.lte.rsrq,
                info.lte.rsrp,
                info.lte.snr,
            )
        if info.nr5g is not None:
            logger.info(
                "[NR5G] RSRP : %d, RSRQ : %d, SNR : %d",
                info.nr5g.rsrp,
                info.nr5g.rsrq,
                info.nr5g.snr,
            )

    def _on_operator_name(self, info: OperatorNameInfo) -> None:
        if info.service_provider_name:
            logger.info("Operator SPN       : %s", info.service_provider_name)
        if info.plmn_name:
            logger.info("Operator PLMN name : %s", info.plmn_name)
        if info.nitz_name:
            logger.info("Operator NITZ name : %s", info.nitz_name)

    # =========================================================================
    # Sync pulse stream
    # =========================================================================

    def _on_time_sync_pulse_report(self, report: TimeSyncPulseReport) -> None:
        logger.info("=== NR5G Time Sync Pulse Report ===")
        for name in ("sfn", "nta", "nta_offset", "leapseconds", "utc_time", "gps_time"):
            value = getattr(report, name)
            if value is not None:
                logger.info("  %s = %d", name, value)

        if report.is_cxo_count_present and report.cxo_count is not None:
            logger.info("  cxo_count = %d", report.cxo_count)

    def _on_lost_frame_sync(self, info: LostFrameSyncInfo) -> None:
        reason = info.reason
        if reason is None:
            return
        logger.error("NR5G Lost Frame Sync: reason=%s (%d)", reason.name, info.reason_code)
