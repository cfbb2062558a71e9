"""HealthTrack BLE host: scan, connect and stream pulse-oximeter telemetry."""

__version__ = "0.1.0"
