"""clinicpush — real-time queue notifications for the clinic platform.

Front-desk and doctor screens keep a WebSocket open through the push
gateway. Whenever a visit changes, the CRUD service publishes a typed
event here and every matching connection gets a "refetch" hint.
"""

__version__ = "0.1.0"
