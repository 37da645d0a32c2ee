# app/outbound/__init__.py
from .connection_tester import ConnectionTester, ProbeResult, build_test_payload
