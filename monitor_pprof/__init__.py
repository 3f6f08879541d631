"""
monitor-pprof - pprof CPU profiles captured through dotnet-monitor.

The package is organized into the following main modules:
- core: configuration, dependency injection and the error hierarchy
- observability.logging: logging setup
- observability.profiling: trace download, decoding and pprof conversion
- api: the REST surface serving ``/debug/pprof/profile``
"""

__version__ = "1.0.0"
__author__ = "Drmusab"
