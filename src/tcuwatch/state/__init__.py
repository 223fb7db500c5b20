"""State layer.

The liveness store is the single mutable piece of the monitor. Decoded
telemetry is the only writer; the policy and report generators only read.
"""
