"""
Test suite for the Emergency Transport service.

Contains unit and integration tests for the dispatch workflow.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
