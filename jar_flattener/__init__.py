"""jar-flattener.

A small build utility that merges a jar, its runtime dependencies and native
libraries with a one-jar boot template into a single executable ``.jar``.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
