"""
Hoarding rental core: booking tokens with confirmation arbitration and
rent escalation previews.
"""

__version__ = "0.1.0"
