"""
Carbon Kernel - batch / escrow core

Converts manually verified carbon-credit batches into vintage-scoped fungible
credits and back, with:
- Batch lifecycle state machine with serial-number uniqueness
- Escrowed detokenization and retirement requests (create / finalize / revert)
- Serial-number range splitting for partially consumed batches
- Exact conservation between batches and fungible supply
"""

__version__ = "0.1.0"
