# rpcvault Test Suite
"""
Unit, integration and security tests.

Run with: pytest
Coverage: coverage run -m pytest && coverage report
"""
