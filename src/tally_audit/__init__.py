"""
Livepeer poll tally audit.

Recomputes a governance poll's yes/no stake tally from chain state and
reconciles it against the tally cached by the subgraph indexer.
"""

__version__ = "0.1.0"
