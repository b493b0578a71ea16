"""Log Dashboard Core — live log tailing, fleet health and snapshot broadcast.

Tails the analysis server log, assembles its multi-line request blocks,
aggregates per hole/camera status plus fleet reachability, and pushes the
full state to dashboard subscribers over SSE.
"""

__version__ = "0.1.0"
