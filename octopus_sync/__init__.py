"""
octopus_sync - Mailing-list reconciliation for EmailOctopus

Keeps remote subscriber lists in line with the parents database: each run
adds missing subscribers and removes the ones no longer expected.
"""

__version__ = "0.1.0"
