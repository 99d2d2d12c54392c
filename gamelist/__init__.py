"""Game list client package for the OGS real-time API.

Holds the websocket connection manager (keepalive, reconnect and request
correlation), the wire codec and typed models for the `gamelist/query` and
`net/ping` messages, and the `MatchBook` snapshot store that diffs each poll
cycle against the previous one.
"""
