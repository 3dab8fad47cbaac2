"""streamhop - multi-hop obfuscated stream resolution."""

__version__ = "0.1.0"
