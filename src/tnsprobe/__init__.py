"""NR5G time sync pulse probe.

Subscribes to QMI NAS indications, waits for NR5G service, configures
modem sync pulse generation and logs the resulting pulse reports.
"""

__version__ = "0.1.0"
