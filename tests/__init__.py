"""Test suite for turnero."""
