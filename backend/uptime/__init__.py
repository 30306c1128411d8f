"""Uptime tracker: polling, sampling and QoS aggregation."""
