"""gridserve: capability-scoped blob storage over HTTP.

Stores uploaded files in a pluggable engine (MongoDB GridFS or the local
filesystem) and serves them through signed, purpose-scoped URLs with
byte-range support and upload integrity checks.
"""

__version__ = "0.1.0"
