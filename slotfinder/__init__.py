"""
slotfinder - Offer free appointment slots from a busy calendar.
"""

__version__ = "0.1.0"
