"""
Integration tests for the motion sensor recorder.

Test Categories:
- Recording scenarios: sessions, activity switches, export
- Legacy fallback: coarse motion/orientation streams
- Concurrent delivery: readings from foreign threads
- Relay: forwarding recorded events, failure handling
- Simulated platform: real-time runs
"""
