"""Prometheus-style counters and histograms, client and server metric collections, and call reporters."""