"""
url-watcher: periodic HTTP(S) liveness and latency probing with Prometheus exposition.
"""
