"""
Ranchhand - Cluster-Resident Remote Control Agent

Keeps a persistent channel to the control server, reports cluster
inventory, runs commands pushed by the server and returns their output.

Architecture:
- Each module is self-contained with clear interfaces
- Modules only talk to each other through injected capabilities
- The outbound channel is a single sink handed to every component

Modules:
- executor: Local process execution
- cluster: Kubernetes API capability (nodes, owner references, deletion)
- inventory: Node inventory reporting
- ownership: Owner-reference binding of managed resources
- api: Wire payload models
- channel: Phoenix channel transport
- dispatcher: Inbound event routing
- session: Connection lifecycle and teardown
"""

__version__ = "1.0.0"
