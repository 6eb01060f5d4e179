"""
CCA Bidder

Automated participation in a continuous clearing auction (CCA):
- Block-driven phase state machine
- Per-bid retry tracking
- Tick alignment and on-chain insertion-point resolution
- Prepare / build / simulate / send transaction pipeline
"""

__version__ = "0.1.0"
