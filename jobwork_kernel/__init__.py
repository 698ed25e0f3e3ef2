"""
Job-Work Kernel - stock ledger and work-assignment lifecycle engine

A transactional stock ledger for textile job work with:
- FIFO allocation from received inventory batches
- Per-assignment cleared / lost / damaged accounting
- Two-phase return approval with a single outstanding request per assignment
- Sale fulfilment from cleared stock
- Append-only audit ledger
"""

__version__ = "0.1.0"
