"""A small Kademlia-style distributed hash table node over line-delimited JSON on TCP."""

__version__ = "0.1.0"