"""Modbus register to MQTT bridge.

Polls typed registers from a single Modbus device, applies per-register
transforms and publishes the results as ``<data_topic>/<register name>``.
"""

__version__ = "1.0.0"
