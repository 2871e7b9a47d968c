"""
Telehealth Emergency Transport Dispatch

A FastAPI-based service for requesting emergency patient transport,
assigning drivers, tracking simulated vehicle location and notifying
connected doctors of new requests.
"""

__version__ = "1.0.0"
