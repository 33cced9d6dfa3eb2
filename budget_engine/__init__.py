"""
Budget Engine - Source Package

Keeps a local mirror of a household's budgeting ledger in sync and derives
budget projections, net-worth rollups and saving rates from it.

DESIGN PRINCIPLES:
1. A cursor only moves after the data it covers is stored
2. Derived numbers are recomputed, never trusted from storage
3. One bad record degrades one line, not the whole report
4. Every sync cycle is auditable
5. Storage and upstream clients are swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Engine Team"
