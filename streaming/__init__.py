"""Streaming probe components.

Building blocks for the live ping/traceroute endpoints:
- line framer (raw output chunks -> complete lines)
- stats accumulator with a pluggable line classifier
- session registry and lifecycle event bus
- session controllers that tie a probe process to an SSE response

Everything is in-process and thread-based so it runs under the threaded Flask
server without extra services.
"""
