"""Discord adapters for the raffle and giveaway features.

The unified runtime in :mod:`bots.unified` wires them to one client and one
command tree.
"""

__all__ = ["raffles", "giveaway", "messaging", "unified", "config"]
