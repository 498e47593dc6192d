"""
Moneywise AI - Request Gateway Package

The AI subsystem of a personal-finance tracker: turns free text into
transactions, holds multi-turn conversations and produces spending
insights, all through one retrying, cancellable Gemini client.

DESIGN PRINCIPLES:
1. AI suggests → Human confirms → System saves
2. Classify failures once, at the transport
3. No silent corrections
4. Every step must be auditable
5. Record store is swappable
"""

__version__ = "1.0.0"
__author__ = "Moneywise Team"
