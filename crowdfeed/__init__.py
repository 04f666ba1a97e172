"""
crowdfeed — real-time crowd-state feed with simulated fallback.

Entry point: python -m crowdfeed.app.main

Provides:
- Snapshot data model and copy-on-write reconciliation (state/)
- Observable crowd-state store with live/simulated status (state.store)
- WebSocket live feed client and fallback simulator (ingest/)
- Web-Mercator satellite tile compositor for the ground texture (geo/)
"""

__version__ = "0.3.0"
