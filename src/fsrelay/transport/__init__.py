"""Transport layers for fsrelay.

Available transports:
- wire: byte framing shared by the WebSocket and HTTP bindings
"""
