"""Runtime infrastructure: telemetry layer and resource sampler."""
