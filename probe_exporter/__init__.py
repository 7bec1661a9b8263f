"""
probe-exporter - Synthetic cloud probes exposed as Prometheus metrics.

Each scrape launches a compute instance and performs an object store round
trip, timing every step. A background garbage collector reclaims any tagged
resource the probes failed to clean up.
"""

__version__ = "0.1.0"
__author__ = "probe-exporter maintainers"
