"""Real-time queue notifications — connection registry + fan-out.

Learn: Events flow in one direction:
1. CRUD service → Publisher.publish(event)
2. Publisher → Redis (who is listening?) → push gateway (deliver to each)

Connections never live in process memory. The gateway owns the sockets;
Redis holds one ConnectionRecord per open socket; every handler reads
Redis fresh because the next request may land on a different worker.
"""
