"""Vector, ordinary, hybrid vector and hybrid logical clocks, with a UDP accumulator network and a causally consistent key-value store."""

__version__ = "0.1.0"