"""
Pytest fixtures for the policy deployment test suite.

- packages: policy trees and distribution archives under ``tmp_path``
- policy_service: in-memory publisher service behind an HTTPX MockTransport
"""
