"""
Analysis back-ends for the camouflage detection pipeline.

This package exposes singleton accessors for:
- the local-contrast anomaly detector (`get_detector`)
- the hosted vision model client (`get_vision_client`)
"""
