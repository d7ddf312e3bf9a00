"""
Core modules.
Contains configuration, logging, metrics, errors and the circuit breaker.
"""
