"""
Test suite for the axon cross-section model.

Run tests with:
    pytest test/
    pytest test/ -v
    pytest test/ -m "playback"
"""
