"""Report assembly, telemetry and export"""
