"""WebSocket to UDP SIP relay.

Browser SIP clients can only speak SIP over WebSocket, while the upstream SIP
server only accepts UDP. Each WebSocket connection gets its own UDP socket and
outbound Via/Contact headers are rewritten to that socket's address:
Browser (JsSIP) -> WebSocket -> relay -> UDP -> SIP server.
"""
