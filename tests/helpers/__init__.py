"""
Test helper utilities for cpap-insight testing.

This module provides reusable utilities for:
- Generating synthetic nightly series
- Building respiratory events and flow-limitation readings
- Building device and wearable night records
"""
