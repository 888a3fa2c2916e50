"""
Realty Desk Account Test Suite

Tests for:
- Identity store (login, register, logout, session restore)
- Profile cache ordering
- Reward units (ads, spending, feature unlocks)
- Subscription state machine
- Session gateway HTTP mapping
- Local API bridge

Run tests with:
    pytest tests/ -v

Skip the HTTP bridge tests:
    pytest tests/ -v -m "not api"
"""
