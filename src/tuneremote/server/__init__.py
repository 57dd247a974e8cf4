"""HTTP and WebSocket surface for tuneremote.

Routes every client request through one request multiplexer onto the
shared command translator.
"""
